from app.stride.modules.content.models import ContentSubmission
from app.stride.modules.content.service import quality_score


def _setup(client, staff, as_user, *, name="Ava", campaign_name="Summer Launch", accept=True):
    r = client.post(
        "/api/campaigns",
        json={"name": campaign_name, "brand_name": "Acme", "start_date": "2026-06-01", "end_date": "2026-06-30"},
        headers=staff,
    )
    campaign_id = r.json["campaign"]["id"]
    local = name.lower()
    r = client.post(
        "/api/influencers",
        json={"display_name": name, "email": f"{local}@example.com", "clerk_id": f"clerk_{local}"},
        headers=staff,
    )
    client.post(f"/api/campaigns/{campaign_id}/influencers", json={"influencer_id": r.json["influencer"]["id"]}, headers=staff)
    me = as_user(f"{local}@example.com")
    if accept:
        client.post(f"/api/influencer/campaigns/{campaign_id}/respond", json={"response": "accept"}, headers=me)
    return campaign_id, me


def _submit(client, campaign_id, me, **extra):
    payload = {"content_url": "https://insta.test/p/1", "content_type": "reel", "platform": "Instagram"}
    payload.update(extra)
    return client.post(f"/api/influencer/campaigns/{campaign_id}/content-submissions", json=payload, headers=me)


def test_submit_moves_participation_to_content_submitted(client, staff, as_user):
    campaign_id, me = _setup(client, staff, as_user)
    r = _submit(client, campaign_id, me, hashtags="#summer, acme", views="12000")
    assert r.status_code == 201, r.json
    sub = r.json["submission"]
    assert sub["status"] == "PENDING"
    assert sub["platform"] == "instagram"
    assert sub["hashtags"] == ["summer", "acme"]
    assert sub["views"] == 12000
    assert sub["influencer_name"] == "Ava"
    assert "quality" in sub

    participation = client.get("/api/influencer/campaigns", headers=me).json["data"][0]
    assert participation["status"] == "CONTENT_SUBMITTED"
    assert participation["content_links"] == ["https://insta.test/p/1"]

    # A second piece keeps the participation where it is
    assert _submit(client, campaign_id, me, content_url="https://insta.test/p/2").status_code == 201
    listed = client.get(f"/api/influencer/campaigns/{campaign_id}/content-submissions", headers=me).json["data"]
    assert len(listed) == 2


def test_submit_requires_accepted_participation(client, staff, as_user):
    campaign_id, me = _setup(client, staff, as_user, accept=False)
    r = _submit(client, campaign_id, me)
    assert r.status_code == 400
    assert r.json["error"] == "Cannot submit content while INVITED"


def test_submit_validation(client, staff, as_user):
    campaign_id, me = _setup(client, staff, as_user)
    r = _submit(client, campaign_id, me, content_url="ftp://x", content_type="tweetstorm", platform="myspace", likes="-3", views="lots")
    assert r.status_code == 400
    errors = r.json["errors"]
    assert "content_url must be an http(s) URL." in errors
    assert "Invalid platform: myspace" in errors
    assert "likes cannot be negative." in errors
    assert "views must be a whole number." in errors
    assert any(e.startswith("content_type must be one of") for e in errors)


def test_review_queue_orders_awaiting_first_and_filters(client, staff, as_user):
    c1, ava = _setup(client, staff, as_user)
    c2, ben = _setup(client, staff, as_user, name="Ben", campaign_name="Winter Drop")
    first = _submit(client, c1, ava).json["submission"]["id"]
    _submit(client, c2, ben, platform="tiktok", title="Snow day")

    r = client.post(f"/api/staff/content-submissions/{first}/review", json={"action": "approve"}, headers=staff)
    assert r.status_code == 200
    assert r.json["submission"]["status"] == "APPROVED"

    body = client.get("/api/staff/content-submissions", headers=staff).json
    assert [row["status"] for row in body["data"]] == ["PENDING", "APPROVED"]
    assert body["stats"] == {"total": 2, "pending": 1, "approved": 1, "rejected": 0, "revision_requested": 0}
    assert body["total_pages"] == 1

    assert client.get("/api/staff/content-submissions?status=pending", headers=staff).json["total"] == 1
    assert client.get("/api/staff/content-submissions?platform=tiktok", headers=staff).json["total"] == 1
    assert client.get("/api/staff/content-submissions?search=snow", headers=staff).json["total"] == 1
    assert client.get("/api/staff/content-submissions?search=ava", headers=staff).json["total"] == 1
    r = client.get(f"/api/staff/content-submissions?campaignId={c2}", headers=staff)
    assert r.json["total"] == 1
    assert r.json["stats"]["total"] == 1
    assert client.get("/api/staff/content-submissions?status=lost", headers=staff).status_code == 400


def test_review_requires_notes_for_reject_and_revision(client, staff, as_user):
    campaign_id, me = _setup(client, staff, as_user)
    sub_id = _submit(client, campaign_id, me).json["submission"]["id"]
    url = f"/api/staff/content-submissions/{sub_id}/review"

    r = client.post(url, json={"action": "reject"}, headers=staff)
    assert r.status_code == 400
    assert r.json["error"] == "Notes are required when rejecting"
    r = client.post(url, json={"action": "revision"}, headers=staff)
    assert r.json["error"] == "Notes are required when requesting revision"
    r = client.post(url, json={"action": "publish"}, headers=staff)
    assert r.json["error"] == "Invalid action. Must be one of: approve, reject, revision"

    r = client.post(url, json={"action": "revision", "notes": "Tag the brand"}, headers=staff)
    assert r.status_code == 200
    sub = r.json["submission"]
    assert sub["status"] == "REVISION_REQUESTED"
    assert sub["review_notes"] == "Tag the brand"
    assert sub["reviewed_at"] is not None

    detail = client.get(f"/api/staff/content-submissions/{sub_id}", headers=staff).json["submission"]
    assert detail["quality"]["overall_score"] >= 0
    assert client.get("/api/staff/content-submissions/missing", headers=staff).status_code == 404
    assert client.get("/api/staff/content-submissions", headers=me).status_code == 403


def test_quality_score_heuristic():
    bare = ContentSubmission(content_url="https://x.test/1", content_type="story", platform="youtube")
    scores = quality_score(bare)
    assert scores["content_score"] == 0
    assert scores["engagement_score"] == 0
    assert scores["brand_alignment_score"] == 0
    assert scores["technical_quality_score"] == 75
    assert "Add a descriptive title" in scores["recommendations"]

    full = ContentSubmission(
        content_url="https://x.test/1",
        content_type="reel",
        platform="instagram",
        title="Launch",
        description="Unboxing",
        caption="A caption that is comfortably longer than fifty characters in total.",
        hashtags=["a", "b", "c"],
        screenshot_url="https://x.test/s.png",
        views=50000,
        likes=100,
        comments=5,
        shares=0,
    )
    scores = quality_score(full)
    assert scores["content_score"] == 100
    # views capped at 25, likes 1, comments 0.5
    assert scores["engagement_score"] == 26
    assert scores["brand_alignment_score"] == 100
    assert scores["technical_quality_score"] == 100
    assert scores["recommendations"] == []
