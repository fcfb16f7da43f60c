import pytest


@pytest.fixture(autouse=True)
def test_set_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("BATCHES_TABLE_NAME", "batches")
    monkeypatch.setenv("UPDATE_BATCH_QUEUE_URL", "https://sqs.eu-west-2.amazonaws.com/123/update-batch")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-2")
    for name in (
        "AWS_REGION",
        "BATCH_STORE_BACKEND",
        "BATCHES_DATABASE_URL",
        "BATCHES_STATUS_INDEX",
        "OPENAI_BASE_URL",
        "OPENAI_TIMEOUT_SECONDS",
        "CHECK_CONCURRENCY",
        "SEND_CONCURRENCY",
        "SEND_TRY_COUNT",
        "SEND_RETRY_DELAY_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
