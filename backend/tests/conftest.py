import os
import pathlib
import tempfile

import pytest

# Settings are read at import time, so the environment is prepared first
_TMP = pathlib.Path(tempfile.mkdtemp(prefix="hearing_tests_"))
_AUDIO = _TMP / "audio"
(_AUDIO / "ling6").mkdir(parents=True, exist_ok=True)
# claps.mp3 is deliberately missing so playback failures can be exercised
for name in ("a", "o", "i", "m", "s", "sh", "bell", "rattle"):
	(_AUDIO / "ling6" / f"{name}.mp3").write_bytes(b"ID3")

os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["AUDIO_ASSET_DIR"] = str(_AUDIO)
os.environ["GEMINI_API_KEY"] = "test-key"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ.pop("OPENROUTER_API_KEY", None)

from fastapi.testclient import TestClient  # noqa: E402

from hearing_tracker.audio import reset_audio_sessions  # noqa: E402
from hearing_tracker.db import Base, engine  # noqa: E402
from hearing_tracker.main import app  # noqa: E402
from hearing_tracker.routers.wizard import reset_wizards  # noqa: E402
from hearing_tracker.sync import reset_record_caches  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_state():
	Base.metadata.drop_all(bind=engine)
	Base.metadata.create_all(bind=engine)
	reset_record_caches()
	reset_audio_sessions()
	reset_wizards()
	yield


@pytest.fixture
def client() -> TestClient:
	with TestClient(app) as c:
		yield c


def register_and_login(client: TestClient, username: str = "caregiver1", password: str = "s3cret-pass") -> dict:
	r = client.post(
		"/auth/register",
		json={"username": username, "password": password, "email": f"{username}@example.com", "phone": "5551234567"},
	)
	assert r.status_code == 201, r.text
	r = client.post("/auth/token", data={"username": username, "password": password})
	assert r.status_code == 200, r.text
	return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def auth_headers(client: TestClient) -> dict:
	return register_and_login(client)


class FakeGemini:
	"""Stands in for GeminiClient; records prompts and returns canned replies."""

	prompts: list = []
	reply: str = '{"recommendations": "Schedule a diagnostic ABR test within one month.", "reminderNeeded": true}'
	fail: bool = False

	def __init__(self, *args, **kwargs) -> None:
		pass

	async def generate(self, prompt: str, **kwargs) -> str:
		FakeGemini.prompts.append(prompt)
		if FakeGemini.fail:
			raise RuntimeError("backend down")
		return FakeGemini.reply

	async def aclose(self) -> None:
		pass


@pytest.fixture
def fake_gemini(monkeypatch):
	from hearing_tracker.routers import screening

	FakeGemini.prompts = []
	FakeGemini.fail = False
	FakeGemini.reply = '{"recommendations": "Schedule a diagnostic ABR test within one month.", "reminderNeeded": true}'
	monkeypatch.setattr(screening, "GeminiClient", FakeGemini)
	return FakeGemini
