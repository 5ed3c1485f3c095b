from tests.api.helpers import finish_interview


class TestProfile:
    def test_new_user_profile(self, client, auth_headers):
        response = client.get("/api/v1/users/me/profile", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "owner_id": "user-alice",
            "total_interviews": 0,
            "total_score": 0,
            "total_practice_time": 0,
            "updated_at": None,
            "average_score": 0.0,
        }

    def test_profile_after_completion(self, client, auth_headers, started_interview, clock):
        clock.advance(minutes=12)
        finish_interview(client, auth_headers, started_interview)

        profile = client.get("/api/v1/users/me/profile", headers=auth_headers).json()

        assert profile["total_interviews"] == 1
        assert profile["total_score"] == 70
        assert profile["total_practice_time"] == 720
        assert profile["average_score"] == 70.0


class TestStats:
    def test_dashboard(self, client, auth_headers, started_interview):
        finish_interview(client, auth_headers, started_interview)

        response = client.get("/api/v1/users/me/stats?window=week", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["window"] == "week"
        assert data["overall"]["total_completed"] == 1
        assert data["windowed"]["average_score"] == 70.0
        assert data["by_role"] == [{"role": "backend", "count": 1, "average_score": 70.0, "total_duration": 0}]
        assert [r["interview_id"] for r in data["recent_interviews"]] == [started_interview["interview_id"]]

    def test_stats_are_per_user(self, client, auth_headers, other_auth_headers, started_interview):
        finish_interview(client, auth_headers, started_interview)

        data = client.get("/api/v1/users/me/stats", headers=other_auth_headers).json()

        assert data["overall"]["total_completed"] == 0
        assert data["by_role"] == []

    def test_unknown_window(self, client, auth_headers):
        response = client.get("/api/v1/users/me/stats?window=decade", headers=auth_headers)

        assert response.status_code == 422
