"""Request helpers shared by the API tests."""

from tests.fakes import SUBSTANTIVE_ANSWER

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
BASE = "/api/v1/interviews"


def answer(client, headers, interview_id, question_id, text=SUBSTANTIVE_ANSWER):
    return client.post(
        f"{BASE}/{interview_id}/answers",
        json={"question_id": question_id, "answer": text, "time_spent_seconds": 42},
        headers=headers,
    )


def finish_interview(client, headers, started):
    """Answer every question of a started interview, then complete it."""
    interview_id = started["interview_id"]
    question = started["question"]
    while True:
        assert answer(client, headers, interview_id, question["id"]).status_code == 200
        outcome = client.get(f"{BASE}/{interview_id}/next-question", headers=headers).json()
        if outcome["kind"] == "exhausted":
            break
        question = outcome["question"]
    return client.post(f"{BASE}/{interview_id}/complete", headers=headers)
