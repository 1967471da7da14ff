from __future__ import annotations

import asyncio

import pytest

from hearing_tracker.audio import AudioSession, PlaybackError, PlayerState

AVAILABLE = {"/audio/ling6/a.mp3", "/audio/ling6/s.mp3", "/audio/ling6/bell.mp3"}


def loader(src: str) -> None:
	if src not in AVAILABLE and not src.startswith("data:"):
		raise PlaybackError(f"missing {src}")


class CountingGenerator:
	def __init__(self, fail_first: bool = False, delay: float = 0.0) -> None:
		self.calls: list[str] = []
		self.fail_first = fail_first
		self.delay = delay

	async def __call__(self, prompt: str) -> str:
		self.calls.append(prompt)
		if self.delay:
			await asyncio.sleep(self.delay)
		if self.fail_first and len(self.calls) == 1:
			raise RuntimeError("tts unavailable")
		return f"data:audio/wav;base64,{len(self.calls)}"


@pytest.fixture
def session() -> AudioSession:
	s = AudioSession(loader, CountingGenerator())
	s.control("a", "/audio/ling6/a.mp3")
	s.control("s", "/audio/ling6/s.mp3")
	s.control("Claps", "/audio/ling6/claps.mp3")
	return s


def test_starting_b_stops_a(session: AudioSession) -> None:
	session.controls["a"].press()
	assert session.playing_sources() == ["a"]

	session.controls["s"].press()
	assert session.playing_sources() == ["s"]
	assert session.controls["a"].is_playing is False
	assert session.handle.source_id == "s"
	assert session.handle.state == PlayerState.PLAYING


def test_pressing_playing_source_toggles_off_and_rewinds(session: AudioSession) -> None:
	session.controls["a"].press()
	session.handle.seek(1.4)

	assert session.play("a", "/audio/ling6/a.mp3") is False
	assert session.handle.paused
	assert session.handle.position == 0.0
	assert session.playing_sources() == []


def test_switch_rewinds_previous_source(session: AudioSession) -> None:
	session.controls["a"].press()
	session.handle.seek(0.8)
	session.controls["s"].press()
	assert session.handle.position == 0.0


def test_playback_failure_leaves_everything_idle(session: AudioSession) -> None:
	session.controls["a"].press()
	with pytest.raises(PlaybackError):
		session.controls["Claps"].press()
	assert session.handle.state == PlayerState.IDLE
	assert session.playing_sources() == []


def test_natural_end_clears_active_control(session: AudioSession) -> None:
	session.controls["s"].press()
	session.report("ended")
	assert session.playing_sources() == []
	assert session.handle.state == PlayerState.IDLE
	# Pressing again after the end starts it again instead of toggling off
	assert session.play("s", "/audio/ling6/s.mp3") is True


def test_detached_control_stops_observing(session: AudioSession) -> None:
	ctl = session.controls["a"]
	ctl.detach()
	session.play("a", "/audio/ling6/a.mp3")
	assert ctl.is_playing is False


def test_unknown_event_rejected(session: AudioSession) -> None:
	with pytest.raises(ValueError):
		session.report("seeked")


@pytest.mark.asyncio
async def test_cached_sound_does_not_call_generator_again() -> None:
	gen = CountingGenerator()
	session = AudioSession(loader, gen)
	first = await session.generated.get_or_generate("m", "say m")
	second = await session.generated.get_or_generate("m", "say m")
	assert first == second
	assert len(gen.calls) == 1
	assert "m" in session.generated


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_call() -> None:
	gen = CountingGenerator(delay=0.01)
	session = AudioSession(loader, gen)
	results = await asyncio.gather(*(session.generated.get_or_generate("sh", "say sh") for _ in range(4)))
	assert len(set(results)) == 1
	assert len(gen.calls) == 1
	assert session.generated.calls == 1


@pytest.mark.asyncio
async def test_failed_generation_is_not_cached() -> None:
	gen = CountingGenerator(fail_first=True)
	session = AudioSession(loader, gen)
	with pytest.raises(RuntimeError):
		await session.generated.get_or_generate("a", "say a")
	assert "a" not in session.generated
	media = await session.generated.get_or_generate("a", "say a")
	assert media.startswith("data:audio/wav;base64,")
	assert len(gen.calls) == 2


@pytest.mark.asyncio
async def test_generated_clip_plays_through_the_same_handle(session: AudioSession) -> None:
	media = await session.generated.get_or_generate("i", "say i")
	session.controls["a"].press()
	session.control("generated:i", media).press()
	assert session.playing_sources() == ["generated:i"]


@pytest.mark.asyncio
async def test_in_flight_sound_is_reported_until_settled() -> None:
	release = asyncio.Event()

	async def slow(prompt: str) -> str:
		await release.wait()
		return "data:audio/wav;base64,AA=="

	session = AudioSession(loader, slow)
	waiter = asyncio.create_task(session.generated.get_or_generate("m", "say m"))
	await asyncio.sleep(0)
	assert session.generated.in_flight("m")
	assert "m" not in session.generated

	release.set()
	await waiter
	assert not session.generated.in_flight("m")
	assert "m" in session.generated


@pytest.mark.asyncio
async def test_cancelled_requester_still_caches_clip() -> None:
	release = asyncio.Event()
	gen_calls = []

	async def slow(prompt: str) -> str:
		gen_calls.append(prompt)
		await release.wait()
		return "data:audio/wav;base64,BB=="

	session = AudioSession(loader, slow)
	waiter = asyncio.create_task(session.generated.get_or_generate("s", "say s"))
	await asyncio.sleep(0)
	waiter.cancel()
	with pytest.raises(asyncio.CancelledError):
		await waiter

	release.set()
	await asyncio.sleep(0.01)
	assert session.generated.get("s") == "data:audio/wav;base64,BB=="
	assert await session.generated.get_or_generate("s", "say s") == "data:audio/wav;base64,BB=="
	assert len(gen_calls) == 1
