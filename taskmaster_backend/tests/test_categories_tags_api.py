def make_category(client, name="Work", **extra):
    res = client.post("/api/v1/categories/", json={"name": name, **extra})
    assert res.status_code == 201, res.text
    return res.json()


def make_tag(client, name="focus", **extra):
    res = client.post("/api/v1/tags/", json={"name": name, **extra})
    assert res.status_code == 201, res.text
    return res.json()


def make_task(client, **fields):
    res = client.post("/api/v1/tasks/", json={"title": "t", **fields})
    assert res.status_code == 201, res.text
    return res.json()


class TestCategories:
    def test_create_with_defaults(self, client):
        cat = make_category(client, "  Home  ")
        assert cat["name"] == "Home"
        assert cat["color"] == "#3B82F6"
        assert cat["icon"] == "📁"
        assert cat["task_count"] == 0
        assert cat["completion_rate"] == 0.0

    def test_duplicate_name_conflict(self, client):
        make_category(client, "Work")
        res = client.post("/api/v1/categories/", json={"name": "Work"})
        assert res.status_code == 409
        assert res.json()["error"] == "Conflict"

    def test_list_includes_stats(self, client):
        cat = make_category(client)
        make_task(client, category_id=cat["id"], completed=True)
        make_task(client, category_id=cat["id"])
        make_task(client, category_id=cat["id"])
        make_task(client, category_id=cat["id"])
        [listed] = client.get("/api/v1/categories/").json()
        assert listed["task_count"] == 4
        assert listed["completed_task_count"] == 1
        assert listed["completion_rate"] == 25.0

    def test_get_with_tasks(self, client):
        cat = make_category(client)
        task = make_task(client, category_id=cat["id"])
        res = client.get(f"/api/v1/categories/{cat['id']}")
        assert res.status_code == 200
        assert [t["id"] for t in res.json()["tasks"]] == [task["id"]]
        assert client.get("/api/v1/categories/999").status_code == 404

    def test_get_lists_every_task(self, client, repo):
        cat = make_category(client)
        for i in range(120):
            repo.create_task({"title": f"task {i}", "category_id": cat["id"]})
        body = client.get(f"/api/v1/categories/{cat['id']}").json()
        assert body["task_count"] == 120
        assert len(body["tasks"]) == 120

    def test_update_and_rename_clash(self, client):
        work = make_category(client, "Work")
        make_category(client, "Home")
        res = client.put(f"/api/v1/categories/{work['id']}", json={"color": "#000000"})
        assert res.status_code == 200
        assert res.json()["color"] == "#000000"
        assert res.json()["name"] == "Work"
        clash = client.put(f"/api/v1/categories/{work['id']}", json={"name": "Home"})
        assert clash.status_code == 409
        assert client.put("/api/v1/categories/999", json={"name": "x"}).status_code == 404

    def test_delete_blocked_while_tasks_exist(self, client):
        cat = make_category(client)
        task = make_task(client, category_id=cat["id"])
        res = client.delete(f"/api/v1/categories/{cat['id']}")
        assert res.status_code == 409
        assert res.json()["message"].startswith("Cannot delete category with existing tasks")

        client.patch(f"/api/v1/tasks/{task['id']}", json={"category_id": None})
        assert client.delete(f"/api/v1/categories/{cat['id']}").status_code == 204
        assert client.delete(f"/api/v1/categories/{cat['id']}").status_code == 404


class TestTags:
    def test_name_is_normalized(self, client):
        tag = make_tag(client, "  Urgent ")
        assert tag["name"] == "urgent"
        assert tag["color"] == "#6B7280"

    def test_duplicate_after_normalization_conflicts(self, client):
        make_tag(client, "urgent")
        res = client.post("/api/v1/tags/", json={"name": "URGENT"})
        assert res.status_code == 409

    def test_list_with_usage_and_popular(self, client):
        a = make_tag(client, "alpha")
        b = make_tag(client, "beta")
        make_tag(client, "gamma")
        make_task(client, tag_ids=[a["id"], b["id"]], completed=True)
        make_task(client, tag_ids=[b["id"]])

        listed = client.get("/api/v1/tags/").json()
        assert [t["name"] for t in listed] == ["alpha", "beta", "gamma"]
        usage = {t["name"]: (t["usage_count"], t["completion_rate"]) for t in listed}
        assert usage == {"alpha": (1, 100.0), "beta": (2, 50.0), "gamma": (0, 0.0)}

        popular = client.get("/api/v1/tags/popular?limit=1").json()
        assert [t["name"] for t in popular] == ["beta"]
        assert [t["name"] for t in client.get("/api/v1/tags/popular").json()] == ["beta", "alpha"]

    def test_get_tag_with_tasks(self, client):
        tag = make_tag(client)
        task = make_task(client, tag_ids=[tag["id"]])
        body = client.get(f"/api/v1/tags/{tag['id']}").json()
        assert [t["id"] for t in body["tasks"]] == [task["id"]]
        assert client.get("/api/v1/tags/404").status_code == 404

    def test_update_tag(self, client):
        tag = make_tag(client, "old")
        res = client.put(f"/api/v1/tags/{tag['id']}", json={"name": " New "})
        assert res.status_code == 200
        assert res.json()["name"] == "new"

    def test_delete_reports_affected_tasks(self, client):
        tag = make_tag(client)
        keep = make_tag(client, "keep")
        task = make_task(client, tag_ids=[tag["id"], keep["id"]])
        make_task(client, tag_ids=[tag["id"]])

        res = client.delete(f"/api/v1/tags/{tag['id']}")
        assert res.status_code == 200
        assert res.json() == {"message": "Tag deleted successfully", "affected_tasks": 2}
        remaining = client.get(f"/api/v1/tasks/{task['id']}").json()["tags"]
        assert [t["name"] for t in remaining] == ["keep"]
        assert client.delete(f"/api/v1/tags/{tag['id']}").status_code == 404
