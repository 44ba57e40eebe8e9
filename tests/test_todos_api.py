from datetime import datetime

from todolist.schemas import TITLE_MAX_LENGTH


def ts(value: str) -> datetime:
    # Pydantic renders UTC as a trailing 'Z'
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def create_todo_payload(
    title="Test Task",
    description="Do something",
    priority=None,
    due_date=None,
):
    payload = {
        "title": title,
        "description": description,
    }
    if priority is not None:
        payload["priority"] = priority
    if due_date is not None:
        payload["due_date"] = due_date
    return payload


def create(client, **kwargs) -> dict:
    res = client.post("/todos", json=create_todo_payload(**kwargs))
    assert res.status_code == 201, res.text
    return res.json()


def assert_todo_shape(todo: dict):
    for key in ["id", "title", "completed", "priority", "created_at", "updated_at"]:
        assert key in todo
    assert "description" in todo
    assert "due_date" in todo
    assert isinstance(todo["id"], int)
    assert isinstance(todo["title"], str)
    assert isinstance(todo["completed"], bool)
    assert todo["priority"] in ("low", "medium", "high")
    ts(todo["created_at"])
    ts(todo["updated_at"])
    if todo["due_date"] is not None:
        datetime.fromisoformat(todo["due_date"])


class TestHealth:
    def test_root_describes_service(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Todo List API"
        assert data["endpoints"]["todos"] == "/todos"

    def test_health_check(self, client):
        res = client.get("/health")
        assert res.status_code == 200
        data = res.json()
        assert data["status"] == "ok"
        ts(data["timestamp"])

    def test_ready_when_database_reachable(self, client):
        res = client.get("/ready")
        assert res.status_code == 200
        assert res.json()["database"] == "connected"

    def test_not_ready_when_pool_closed(self, client):
        client.app.state.pool.close()
        res = client.get("/ready")
        assert res.status_code == 503
        data = res.json()
        assert data["status"] == "not ready"
        assert data["database"] == "disconnected"

    def test_request_id_is_echoed(self, client):
        res = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"


class TestTodosCRUD:
    def test_create_todo_minimal(self, client):
        res = client.post("/todos", json={"title": "Buy milk"})
        assert res.status_code == 201
        todo = res.json()
        assert_todo_shape(todo)
        assert todo["title"] == "Buy milk"
        assert todo["description"] is None
        assert todo["completed"] is False
        assert todo["priority"] == "medium"
        assert todo["due_date"] is None
        assert todo["created_at"] == todo["updated_at"]

    def test_create_todo_trims_title(self, client):
        todo = create(client, title="  Buy milk  ")
        assert todo["title"] == "Buy milk"

    def test_create_todo_with_priority_and_due_date(self, client):
        todo = create(client, title="Pay bills", description="Electricity", priority="high", due_date="2099-12-25")
        assert_todo_shape(todo)
        assert todo["priority"] == "high"
        # Due date should be promoted to midnight
        assert todo["due_date"].startswith("2099-12-25T00:00:00")

    def test_create_ignores_completed_and_unknown_fields(self, client):
        res = client.post("/todos", json={"title": "x", "completed": True, "owner": "bob"})
        assert res.status_code == 201
        assert res.json()["completed"] is False
        assert "owner" not in res.json()

    def test_create_null_priority_defaults_to_medium(self, client):
        res = client.post("/todos", json={"title": "x", "priority": None})
        assert res.status_code == 201
        assert res.json()["priority"] == "medium"

    def test_ids_are_not_reused(self, client):
        first = create(client, title="one")
        assert client.delete(f"/todos/{first['id']}").status_code == 204
        second = create(client, title="two")
        assert second["id"] > first["id"]

    def test_get_todo_and_not_found(self, client):
        todo = create(client, title="Read book")
        tid = todo["id"]

        res_get = client.get(f"/todos/{tid}")
        assert res_get.status_code == 200
        fetched = res_get.json()
        assert fetched == todo

        res_404 = client.get("/todos/999999")
        assert res_404.status_code == 404
        assert res_404.json() == {"error": "Todo not found"}

    def test_invalid_ids_are_rejected(self, client):
        for bad in ["abc", "0", "-3", "1.5", "12abc"]:
            for method, path in [
                ("GET", f"/todos/{bad}"),
                ("PUT", f"/todos/{bad}"),
                ("PATCH", f"/todos/{bad}/toggle"),
                ("DELETE", f"/todos/{bad}"),
            ]:
                res = client.request(method, path, json={} if method == "PUT" else None)
                assert res.status_code == 400, (method, path)
                assert res.json() == {"error": "Invalid todo ID"}

    def test_ids_beyond_integer_range_are_rejected(self, client):
        for method, path in [
            ("GET", "/todos/99999999999999999999"),
            ("PUT", "/todos/99999999999999999999"),
            ("PATCH", "/todos/99999999999999999999/toggle"),
            ("DELETE", "/todos/99999999999999999999"),
        ]:
            res = client.request(method, path, json={"title": "x"} if method == "PUT" else None)
            assert res.status_code == 400, (method, path)
            assert res.json() == {"error": "Invalid todo ID"}

        # The largest storable id is valid, it just does not exist
        assert client.get(f"/todos/{2**63 - 1}").status_code == 404

    def test_put_partial_update(self, client):
        todo = create(client, title="Partial", description="X", priority="low")
        tid = todo["id"]

        res = client.put(f"/todos/{tid}", json={"title": " Partial Updated ", "completed": True})
        assert res.status_code == 200
        updated = res.json()
        assert updated["id"] == tid
        assert updated["title"] == "Partial Updated"
        assert updated["completed"] is True
        # untouched fields remain
        assert updated["description"] == "X"
        assert updated["priority"] == "low"
        assert updated["created_at"] == todo["created_at"]
        assert ts(updated["updated_at"]) > ts(todo["updated_at"])

    def test_put_not_found(self, client):
        res = client.put("/todos/123456", json={"title": "Nope"})
        assert res.status_code == 404
        assert res.json() == {"error": "Todo not found"}

    def test_put_with_no_fields_is_a_read(self, client):
        todo = create(client, title="Stable")
        res = client.put(f"/todos/{todo['id']}", json={})
        assert res.status_code == 200
        assert res.json() == todo

        res_unknown = client.put(f"/todos/{todo['id']}", json={"colour": "red"})
        assert res_unknown.status_code == 200
        assert res_unknown.json()["updated_at"] == todo["updated_at"]

    def test_put_with_no_fields_on_missing_id(self, client):
        res = client.put("/todos/4242", json={})
        assert res.status_code == 404

    def test_put_empty_due_date_clears_it(self, client):
        todo = create(client, title="Due", due_date="2100-01-01")
        tid = todo["id"]

        kept = client.put(f"/todos/{tid}", json={"title": "Due soon"}).json()
        assert kept["due_date"].startswith("2100-01-01")

        cleared = client.put(f"/todos/{tid}", json={"due_date": ""}).json()
        assert cleared["due_date"] is None

    def test_put_null_due_date_clears_it(self, client):
        todo = create(client, title="Due", due_date="2100-01-01T09:30:00")
        res = client.put(f"/todos/{todo['id']}", json={"due_date": None})
        assert res.status_code == 200
        assert res.json()["due_date"] is None

    def test_put_null_description_clears_it(self, client):
        todo = create(client, title="Described", description="words")
        res = client.put(f"/todos/{todo['id']}", json={"description": None})
        assert res.json()["description"] is None

    def test_put_validation_errors(self, client):
        tid = create(client, title="Valid")["id"]

        res = client.put(f"/todos/{tid}", json={"title": "   "})
        assert res.status_code == 400
        assert res.json() == {"error": "Title cannot be empty"}

        res = client.put(f"/todos/{tid}", json={"priority": "urgent"})
        assert res.status_code == 400
        assert res.json() == {"error": "Invalid priority value"}

        res = client.put(f"/todos/{tid}", json={"priority": None})
        assert res.status_code == 400

        res = client.put(f"/todos/{tid}", json={"completed": None})
        assert res.status_code == 400

        res = client.put(f"/todos/{tid}", json={"due_date": "not-a-date"})
        assert res.status_code == 400
        assert "due_date" in res.json()["error"]

        # nothing was written
        assert client.get(f"/todos/{tid}").json()["title"] == "Valid"

    def test_toggle_is_its_own_inverse(self, client):
        todo = create(client, title="Flip")
        tid = todo["id"]

        once = client.patch(f"/todos/{tid}/toggle")
        assert once.status_code == 200
        assert once.json()["completed"] is True

        twice = client.patch(f"/todos/{tid}/toggle")
        assert twice.status_code == 200
        assert twice.json()["completed"] is False

        assert ts(todo["updated_at"]) < ts(once.json()["updated_at"]) < ts(twice.json()["updated_at"])
        assert twice.json()["created_at"] == todo["created_at"]

    def test_toggle_not_found(self, client):
        res = client.patch("/todos/999/toggle")
        assert res.status_code == 404
        assert res.json() == {"error": "Todo not found"}

    def test_delete_todo(self, client):
        tid = create(client, title="ToDelete")["id"]

        res_del = client.delete(f"/todos/{tid}")
        assert res_del.status_code == 204
        assert res_del.text == ""

        res_get = client.get(f"/todos/{tid}")
        assert res_get.status_code == 404
        # Deleting again is 404
        res_del_again = client.delete(f"/todos/{tid}")
        assert res_del_again.status_code == 404
        assert res_del_again.json() == {"error": "Todo not found"}

    def test_buy_milk_scenario(self, client):
        res = client.post("/todos", json={"title": " Buy milk "})
        assert res.status_code == 201
        todo = res.json()
        assert todo["title"] == "Buy milk"
        tid = todo["id"]

        toggled = client.patch(f"/todos/{tid}/toggle")
        assert toggled.json()["completed"] is True

        bad = client.put(f"/todos/{tid}", json={"priority": "urgent"})
        assert bad.status_code == 400

        assert client.delete(f"/todos/{tid}").status_code == 204
        assert client.get(f"/todos/{tid}").status_code == 404


class TestListFiltering:
    def seed(self, client):
        rows = [
            ("Buy milk", "from the corner shop", "high"),
            ("Walk dog", None, "low"),
            ("Write report", "quarterly MILKSHAKE numbers", "medium"),
            ("Call mom", "about 100% discount_code", "high"),
        ]
        return [create(client, title=t, description=d, priority=p) for t, d, p in rows]

    def test_list_empty(self, client):
        res = client.get("/todos")
        assert res.status_code == 200
        assert res.json() == []

    def test_list_newest_first(self, client):
        created = self.seed(client)
        items = client.get("/todos").json()
        assert [t["id"] for t in items] == [t["id"] for t in reversed(created)]
        created_ts = [ts(t["created_at"]) for t in items]
        assert created_ts == sorted(created_ts, reverse=True)

    def test_filter_completed_true_false(self, client):
        created = self.seed(client)
        client.patch(f"/todos/{created[0]['id']}/toggle")
        client.patch(f"/todos/{created[2]['id']}/toggle")

        done = client.get("/todos?completed=true").json()
        assert {t["id"] for t in done} == {created[0]["id"], created[2]["id"]}
        assert all(t["completed"] is True for t in done)

        # An explicit false still filters
        open_items = client.get("/todos?completed=false").json()
        assert {t["id"] for t in open_items} == {created[1]["id"], created[3]["id"]}

    def test_filter_priority(self, client):
        self.seed(client)
        high = client.get("/todos?priority=high").json()
        assert [t["title"] for t in high] == ["Call mom", "Buy milk"]

        # Unknown literals simply match nothing
        assert client.get("/todos?priority=urgent").json() == []

    def test_search_matches_title_or_description_case_insensitively(self, client):
        self.seed(client)
        items = client.get("/todos", params={"search": "milk"}).json()
        assert {t["title"] for t in items} == {"Buy milk", "Write report"}

        by_desc = client.get("/todos", params={"search": "CORNER"}).json()
        assert [t["title"] for t in by_desc] == ["Buy milk"]

    def test_search_folds_case_beyond_ascii(self, client):
        self.seed(client)
        create(client, title="ÜBER Étude", description="Straße fegen")

        assert [t["title"] for t in client.get("/todos", params={"search": "über"}).json()] == ["ÜBER Étude"]
        assert [t["title"] for t in client.get("/todos", params={"search": "éTUDE"}).json()] == ["ÜBER Étude"]
        assert [t["title"] for t in client.get("/todos", params={"search": "STRASSE"}).json()] == ["ÜBER Étude"]

    def test_search_wildcards_match_literally(self, client):
        self.seed(client)
        percent = client.get("/todos", params={"search": "100%"}).json()
        assert [t["title"] for t in percent] == ["Call mom"]

        underscore = client.get("/todos", params={"search": "t_c"}).json()
        assert [t["title"] for t in underscore] == ["Call mom"]

    def test_search_is_not_interpolated(self, client):
        self.seed(client)
        res = client.get("/todos", params={"search": "'; DROP TABLE todos; --"})
        assert res.status_code == 200
        assert res.json() == []
        assert len(client.get("/todos").json()) == 4

    def test_combined_filters_and_unknown_keys(self, client):
        created = self.seed(client)
        client.patch(f"/todos/{created[3]['id']}/toggle")
        res = client.get("/todos", params={"completed": "true", "priority": "high", "search": "mom", "sort": "title"})
        assert [t["id"] for t in res.json()] == [created[3]["id"]]


class TestValidationErrors:
    def test_create_title_empty(self, client):
        res = client.post("/todos", json={"title": "  ", "description": "x"})
        assert res.status_code == 400
        assert res.json() == {"error": "Title is required"}

    def test_create_title_missing(self, client):
        res = client.post("/todos", json={"description": "x"})
        assert res.status_code == 400
        assert res.json() == {"error": "Title is required"}

    def test_create_title_too_long(self, client):
        res = client.post("/todos", json={"title": "x" * (TITLE_MAX_LENGTH + 1)})
        assert res.status_code == 400

    def test_create_title_wrong_type(self, client):
        res = client.post("/todos", json={"title": 42})
        assert res.status_code == 400
        assert res.json()["error"].startswith("title:")

    def test_create_invalid_priority(self, client):
        res = client.post("/todos", json={"title": "x", "priority": "urgent"})
        assert res.status_code == 400
        assert res.json() == {"error": "Invalid priority value"}

    def test_create_body_must_be_object(self, client):
        res = client.post("/todos", json=["title"])
        assert res.status_code == 400
        assert res.json() == {"error": "Request body must be a JSON object"}

    def test_create_malformed_json(self, client):
        res = client.post("/todos", content=b"{not json", headers={"Content-Type": "application/json"})
        assert res.status_code == 400
        assert res.json() == {"error": "Invalid request body"}

    def test_create_invalid_due_date(self, client):
        res = client.post("/todos", json={"title": "x", "due_date": "tomorrow"})
        assert res.status_code == 400
        assert "due_date" in res.json()["error"]


class TestRouting:
    def test_unknown_route(self, client):
        res = client.get("/nope")
        assert res.status_code == 404
        assert res.json() == {"error": "Route not found"}

    def test_method_not_allowed(self, client):
        res = client.patch("/todos")
        assert res.status_code == 405
        assert res.json() == {"error": "Method not allowed"}
