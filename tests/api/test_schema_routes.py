"""Tests for the schema template and validation routes."""


class TestTemplates:
    """Tests for template browsing."""

    def test_list(self, client):
        response = client.get("/api/v1/schema/templates")
        assert response.status_code == 200
        assert {"default", "starter"} <= set(response.json()["templates"])

    def test_get(self, client):
        data = client.get("/api/v1/schema/templates/starter").json()
        assert data["name"] == "starter"
        assert data["totalSteps"] == 5
        relation = data["schema"]["databases"][0]["properties"][3]["relation"]
        assert relation == {"targetDatabaseKey": "contacts", "syncedPropertyName": "Company"}

    def test_unknown_is_404(self, client):
        response = client.get("/api/v1/schema/templates/nope")
        assert response.status_code == 404
        assert "nope" in response.json()["detail"]


class TestValidate:
    """Tests for POST /schema/validate."""

    def test_valid_schema(self, client, starter_schema_dict):
        data = client.post("/api/v1/schema/validate", json={"schema": starter_schema_dict}).json()
        assert data["valid"] is True
        assert data["totalSteps"] == 5
        assert data["issues"] == []

    def test_schema_with_errors(self, client):
        schema = {
            "databases": [
                {"key": "a", "name": "A", "properties": [{"name": "Notes", "type": "rich_text"}]}
            ]
        }
        response = client.post("/api/v1/schema/validate", json={"schema": schema})
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert data["totalSteps"] is None
        assert data["issues"][0]["databaseKey"] == "a"
        assert "title property" in data["issues"][0]["message"]

    def test_warnings_keep_schema_valid(self, client):
        schema = {
            "databases": [
                {
                    "key": "a",
                    "name": "A",
                    "properties": [
                        {"name": "Name", "type": "title"},
                        {"name": "Stage", "type": "select"},
                    ],
                }
            ]
        }
        data = client.post("/api/v1/schema/validate", json={"schema": schema}).json()
        assert data["valid"] is True
        assert [i["severity"] for i in data["issues"]] == ["warning"]

    def test_malformed_schema(self, client):
        data = client.post(
            "/api/v1/schema/validate",
            json={"schema": {"databases": [{"key": "a"}]}},
        ).json()
        assert data["valid"] is False
        assert data["issues"]
        assert all(i["severity"] == "error" for i in data["issues"])
