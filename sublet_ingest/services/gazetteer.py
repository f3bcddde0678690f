from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class Gazetteer:
    """Street, neighborhood and landmark names of one city, in every supported language."""

    city: str
    country: str
    country_code: str
    center: GeoPoint
    streets: Mapping[str, GeoPoint] = field(default_factory=dict)
    neighborhoods: Mapping[str, GeoPoint] = field(default_factory=dict)
    landmarks: Mapping[str, GeoPoint] = field(default_factory=dict)


TEL_AVIV_STREETS: dict[str, GeoPoint] = {
    "Rothschild Boulevard": GeoPoint(32.0636, 34.7740),
    "Rothschild Blvd": GeoPoint(32.0636, 34.7740),
    "Rothschild": GeoPoint(32.0650, 34.7760),
    "שדרות רוטשילד": GeoPoint(32.0636, 34.7740),
    "רוטשילד": GeoPoint(32.0650, 34.7760),
    "Dizengoff": GeoPoint(32.0799, 34.7740),
    "דיזנגוף": GeoPoint(32.0799, 34.7740),
    "Ben Yehuda": GeoPoint(32.0820, 34.7700),
    "בן יהודה": GeoPoint(32.0820, 34.7700),
    "Allenby": GeoPoint(32.0680, 34.7705),
    "אלנבי": GeoPoint(32.0680, 34.7705),
    "King George": GeoPoint(32.0740, 34.7745),
    "קינג ג'ורג'": GeoPoint(32.0740, 34.7745),
    "Ibn Gabirol": GeoPoint(32.0830, 34.7815),
    "אבן גבירול": GeoPoint(32.0830, 34.7815),
    "Hayarkon": GeoPoint(32.0850, 34.7690),
    "הירקון": GeoPoint(32.0850, 34.7690),
    "Frishman": GeoPoint(32.0800, 34.7720),
    "פרישמן": GeoPoint(32.0800, 34.7720),
    "Gordon": GeoPoint(32.0830, 34.7710),
    "גורדון": GeoPoint(32.0830, 34.7710),
    "Sheinkin": GeoPoint(32.0700, 34.7740),
    "שינקין": GeoPoint(32.0700, 34.7740),
    "Bograshov": GeoPoint(32.0770, 34.7700),
    "בוגרשוב": GeoPoint(32.0770, 34.7700),
    "Nahalat Binyamin": GeoPoint(32.0665, 34.7700),
    "נחלת בנימין": GeoPoint(32.0665, 34.7700),
    "Herzl": GeoPoint(32.0560, 34.7720),
    "הרצל": GeoPoint(32.0560, 34.7720),
    "Arlozorov": GeoPoint(32.0870, 34.7800),
    "ארלוזורוב": GeoPoint(32.0870, 34.7800),
    "Basel": GeoPoint(32.0890, 34.7820),
    "בזל": GeoPoint(32.0890, 34.7820),
    "Weizmann": GeoPoint(32.0880, 34.7900),
    "ויצמן": GeoPoint(32.0880, 34.7900),
    "Shaul Hamelech": GeoPoint(32.0780, 34.7870),
    "שאול המלך": GeoPoint(32.0780, 34.7870),
    "Yehuda Halevi": GeoPoint(32.0630, 34.7730),
    "יהודה הלוי": GeoPoint(32.0630, 34.7730),
    "Lilienblum": GeoPoint(32.0625, 34.7705),
    "לילינבלום": GeoPoint(32.0625, 34.7705),
    "Bialik": GeoPoint(32.0735, 34.7710),
    "ביאליק": GeoPoint(32.0735, 34.7710),
    "Jabotinsky": GeoPoint(32.0885, 34.7770),
    "ז'בוטינסקי": GeoPoint(32.0885, 34.7770),
    "Hashmonaim": GeoPoint(32.0710, 34.7840),
    "החשמונאים": GeoPoint(32.0710, 34.7840),
    "Levinsky": GeoPoint(32.0590, 34.7740),
    "לוינסקי": GeoPoint(32.0590, 34.7740),
}

TEL_AVIV_NEIGHBORHOODS: dict[str, GeoPoint] = {
    "Florentin": GeoPoint(32.0560, 34.7680),
    "פלורנטין": GeoPoint(32.0560, 34.7680),
    "Neve Tzedek": GeoPoint(32.0610, 34.7650),
    "נווה צדק": GeoPoint(32.0610, 34.7650),
    "Kerem HaTeimanim": GeoPoint(32.0680, 34.7670),
    "כרם התימנים": GeoPoint(32.0680, 34.7670),
    "Jaffa": GeoPoint(32.0500, 34.7550),
    "יפו": GeoPoint(32.0500, 34.7550),
    "Old North": GeoPoint(32.0890, 34.7750),
    "הצפון הישן": GeoPoint(32.0890, 34.7750),
    "New North": GeoPoint(32.0950, 34.7830),
    "הצפון החדש": GeoPoint(32.0950, 34.7830),
    "Lev Hair": GeoPoint(32.0700, 34.7750),
    "לב העיר": GeoPoint(32.0700, 34.7750),
    "Ramat Aviv": GeoPoint(32.1130, 34.8000),
    "רמת אביב": GeoPoint(32.1130, 34.8000),
    "Bavli": GeoPoint(32.0970, 34.7950),
    "בבלי": GeoPoint(32.0970, 34.7950),
    "Neve Shaanan": GeoPoint(32.0560, 34.7770),
    "נווה שאנן": GeoPoint(32.0560, 34.7770),
    "Montefiore": GeoPoint(32.0650, 34.7780),
    "מונטיפיורי": GeoPoint(32.0650, 34.7780),
    "Sarona": GeoPoint(32.0720, 34.7870),
    "שרונה": GeoPoint(32.0720, 34.7870),
    "Yad Eliyahu": GeoPoint(32.0580, 34.7950),
    "יד אליהו": GeoPoint(32.0580, 34.7950),
    "Ajami": GeoPoint(32.0480, 34.7530),
    "עג'מי": GeoPoint(32.0480, 34.7530),
    "Shapira": GeoPoint(32.0520, 34.7740),
    "שפירא": GeoPoint(32.0520, 34.7740),
    "Tzahala": GeoPoint(32.1100, 34.8250),
    "צהלה": GeoPoint(32.1100, 34.8250),
}

TEL_AVIV_LANDMARKS: dict[str, GeoPoint] = {
    "Dizengoff Center": GeoPoint(32.0753, 34.7750),
    "דיזנגוף סנטר": GeoPoint(32.0753, 34.7750),
    "Dizengoff Square": GeoPoint(32.0780, 34.7740),
    "כיכר דיזנגוף": GeoPoint(32.0780, 34.7740),
    "Carmel Market": GeoPoint(32.0680, 34.7690),
    "שוק הכרמל": GeoPoint(32.0680, 34.7690),
    "Levinsky Market": GeoPoint(32.0600, 34.7730),
    "שוק לוינסקי": GeoPoint(32.0600, 34.7730),
    "Habima": GeoPoint(32.0725, 34.7790),
    "הבימה": GeoPoint(32.0725, 34.7790),
    "Rabin Square": GeoPoint(32.0810, 34.7810),
    "כיכר רבין": GeoPoint(32.0810, 34.7810),
    "Azrieli": GeoPoint(32.0740, 34.7920),
    "עזריאלי": GeoPoint(32.0740, 34.7920),
    "Gordon Beach": GeoPoint(32.0830, 34.7680),
    "חוף גורדון": GeoPoint(32.0830, 34.7680),
    "Tel Aviv Port": GeoPoint(32.0970, 34.7730),
    "נמל תל אביב": GeoPoint(32.0970, 34.7730),
    "Yarkon Park": GeoPoint(32.0980, 34.8100),
    "פארק הירקון": GeoPoint(32.0980, 34.8100),
    "Meir Park": GeoPoint(32.0740, 34.7730),
    "גן מאיר": GeoPoint(32.0740, 34.7730),
    "Tel Aviv University": GeoPoint(32.1133, 34.8044),
    "אוניברסיטת תל אביב": GeoPoint(32.1133, 34.8044),
}


def build_tel_aviv_gazetteer(center: GeoPoint | None = None) -> Gazetteer:
    return Gazetteer(
        city="Tel Aviv",
        country="Israel",
        country_code="IL",
        center=center or GeoPoint(32.0853, 34.7818),
        streets=TEL_AVIV_STREETS,
        neighborhoods=TEL_AVIV_NEIGHBORHOODS,
        landmarks=TEL_AVIV_LANDMARKS,
    )
