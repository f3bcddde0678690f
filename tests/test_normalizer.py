from sublet_ingest.schemas.posts import RawPost, Rejected
from sublet_ingest.services.normalizer import build_full_text, collect_image_candidates, normalize


def test_normalize_resolves_field_aliases() -> None:
    post = normalize(
        {
            "message": "Room in Florentin for two months",
            "postUrl": "https://www.facebook.com/groups/1/posts/2",
            "postId": 42,
            "groupName": "Sublets TLV",
            "user": {"name": "Dana"},
            "time": "2024-02-01T10:00:00Z",
        }
    )

    assert isinstance(post, RawPost)
    assert post.text == "Room in Florentin for two months"
    assert post.source_url == "https://www.facebook.com/groups/1/posts/2"
    assert post.external_id == "42"
    assert post.group_context == "Sublets TLV"
    assert post.author_name == "Dana"
    assert post.posted_at == "2024-02-01T10:00:00Z"


def test_normalize_takes_first_non_empty_alias() -> None:
    post = normalize({"text": "   ", "message": "hello there", "url": "", "link": "https://example.com/p/1"})

    assert isinstance(post, RawPost)
    assert post.text == "hello there"
    assert post.source_url == "https://example.com/p/1"


def test_normalize_rejects_non_object_items() -> None:
    rejected = normalize(["not", "an", "object"])

    assert isinstance(rejected, Rejected)
    assert "not an object" in rejected.reason


def test_normalize_rejects_short_text_without_url_and_lists_keys() -> None:
    rejected = normalize({"text": "hi", "likes": 3})

    assert isinstance(rejected, Rejected)
    assert "likes" in rejected.reason
    assert "text" in rejected.reason


def test_normalize_accepts_short_text_when_url_present() -> None:
    post = normalize({"text": "", "url": "https://example.com/p/1"})

    assert isinstance(post, RawPost)
    assert post.text == ""


def test_build_full_text_appends_secondary_fields_once() -> None:
    raw = {"title": "Title", "previewDescription": "Desc", "previewTitle": "Title"}

    assert build_full_text(raw, "Body") == "Body\n\nTitle\n\nDesc"
    assert build_full_text({"title": "Body"}, "Body") == "Body"


def test_collect_image_candidates_orders_dedupes_and_skips_page_links() -> None:
    raw = {
        "attachments": [
            {
                "media": {"image": {"uri": "https://scontent.fbcdn.net/a.jpg"}},
                "url": "https://www.facebook.com/photo?fbid=1",
                "thumbnail": "https://scontent.fbcdn.net/t.jpg",
            },
            {"photo": "https://scontent.fbcdn.net/a.jpg"},
            "https://cdn.example.com/s.webp",
        ],
        "images": ["https://cdn.example.com/b.png", "not-a-url"],
        "imageUrl": "https://cdn.example.com/c.jpg",
    }

    assert collect_image_candidates(raw) == [
        "https://scontent.fbcdn.net/a.jpg",
        "https://cdn.example.com/s.webp",
        "https://cdn.example.com/b.png",
        "https://cdn.example.com/c.jpg",
        "https://scontent.fbcdn.net/t.jpg",
    ]
