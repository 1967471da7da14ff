"""
Test-sound playback coordination.

One ``AudioSession`` per caregiver owns a single ``PlaybackHandle``; every sound
control on the Ling-6 page is bound to that session, so starting one sound
always stops the previous one. Controls never touch each other: each listens to
the handle's events and works out for itself whether it is the one playing.
"""

from __future__ import annotations
import asyncio
import functools
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[["PlaybackHandle"], None]
Loader = Callable[[str], None]
Generator = Callable[[str], Awaitable[str]]

EVENTS = ("play", "pause", "ended", "error")


class PlaybackError(Exception):
	"""The handle could not start the requested source."""


class PlayerState(str, Enum):
	IDLE = "idle"
	LOADING = "loading"
	PLAYING = "playing"


class PlaybackHandle:
	"""Single playable handle: Idle -> Loading(src) -> Playing(src) -> Idle."""

	def __init__(self, loader: Loader) -> None:
		self._loader = loader
		self._listeners: Dict[str, List[Listener]] = {e: [] for e in EVENTS}
		self.source_id: Optional[str] = None
		self.src: Optional[str] = None
		self.state = PlayerState.IDLE
		self.position = 0.0

	@property
	def paused(self) -> bool:
		return self.state != PlayerState.PLAYING

	def add_listener(self, event: str, listener: Listener) -> None:
		self._listeners[event].append(listener)

	def remove_listener(self, event: str, listener: Listener) -> None:
		try:
			self._listeners[event].remove(listener)
		except ValueError:
			pass

	def _emit(self, event: str) -> None:
		for listener in list(self._listeners[event]):
			listener(self)

	def set_source(self, source_id: str, src: str) -> None:
		self.source_id = source_id
		self.src = src
		self.position = 0.0

	def play(self) -> None:
		if self.src is None:
			raise PlaybackError("no source set")
		self.state = PlayerState.LOADING
		try:
			self._loader(self.src)
		except PlaybackError:
			self.state = PlayerState.IDLE
			self._emit("error")
			raise
		self.state = PlayerState.PLAYING
		self._emit("play")

	def pause(self) -> None:
		if self.state == PlayerState.IDLE:
			return
		self.state = PlayerState.IDLE
		self._emit("pause")

	def stop(self) -> None:
		self.pause()
		self.position = 0.0

	def seek(self, position: float) -> None:
		self.position = max(0.0, float(position))

	def finish(self) -> None:
		"""Natural end of the current source."""
		if self.state != PlayerState.PLAYING:
			return
		self.state = PlayerState.IDLE
		self.position = 0.0
		self._emit("ended")

	def snapshot(self) -> Dict[str, Any]:
		return {
			"source_id": self.source_id,
			"src": self.src if self.src is None or not self.src.startswith("data:") else "data:",
			"state": self.state.value,
			"position": self.position,
		}


class SoundControl:
	"""A play button bound to one source; derives ``is_playing`` from handle events."""

	def __init__(self, session: "AudioSession", source_id: str, src: str) -> None:
		self.session = session
		self.source_id = source_id
		self.src = src
		self.is_playing = False
		self._attached = False

	def attach(self) -> None:
		if self._attached:
			return
		handle = self.session.handle
		handle.add_listener("play", self._on_play)
		for event in ("pause", "ended", "error"):
			handle.add_listener(event, self._on_stop)
		self._attached = True

	def detach(self) -> None:
		handle = self.session.handle
		handle.remove_listener("play", self._on_play)
		for event in ("pause", "ended", "error"):
			handle.remove_listener(event, self._on_stop)
		self._attached = False
		self.is_playing = False

	def _on_play(self, handle: PlaybackHandle) -> None:
		self.is_playing = handle.source_id == self.source_id

	def _on_stop(self, handle: PlaybackHandle) -> None:
		self.is_playing = False

	def press(self) -> None:
		self.session.play(self.source_id, self.src)


class GeneratedAudioCache:
	"""Generated clips per sound id, kept for the life of the session.

	Concurrent requests for the same sound id share one generation call. A failed
	call is not cached, so the next request tries again.
	"""

	def __init__(self, generate: Generator) -> None:
		self._generate = generate
		self._clips: Dict[str, str] = {}
		self._inflight: Dict[str, "asyncio.Task[str]"] = {}
		self.calls = 0

	def get(self, sound_id: str) -> Optional[str]:
		return self._clips.get(sound_id)

	def __contains__(self, sound_id: str) -> bool:
		return sound_id in self._clips

	def __len__(self) -> int:
		return len(self._clips)

	def sound_ids(self) -> List[str]:
		return sorted(self._clips)

	def in_flight(self, sound_id: str) -> bool:
		return sound_id in self._inflight

	async def get_or_generate(self, sound_id: str, prompt: str) -> str:
		cached = self._clips.get(sound_id)
		if cached is not None:
			return cached
		pending = self._inflight.get(sound_id)
		if pending is None:
			self.calls += 1
			pending = asyncio.get_running_loop().create_task(self._generate(prompt))
			self._inflight[sound_id] = pending
			# Registered before any awaiter's shield, so the clip is cached when they resume
			pending.add_done_callback(functools.partial(self._settle, sound_id))
		return await asyncio.shield(pending)

	def _settle(self, sound_id: str, task: "asyncio.Task[str]") -> None:
		self._inflight.pop(sound_id, None)
		if task.cancelled():
			return
		error = task.exception()
		if error is not None:
			logger.warning("generation of %s failed: %s", sound_id, error)
			return
		self._clips[sound_id] = task.result()


class AudioSession:
	"""Owns the handle, the controls bound to it, and the generated-clip cache."""

	def __init__(self, loader: Loader, generate: Generator) -> None:
		self.handle = PlaybackHandle(loader)
		self.controls: Dict[str, SoundControl] = {}
		self.generated = GeneratedAudioCache(generate)

	def control(self, source_id: str, src: str) -> SoundControl:
		ctl = self.controls.get(source_id)
		if ctl is None or ctl.src != src:
			if ctl is not None:
				ctl.detach()
			ctl = SoundControl(self, source_id, src)
			ctl.attach()
			self.controls[source_id] = ctl
		return ctl

	def play(self, source_id: str, src: str) -> bool:
		"""Toggle ``source_id``; returns True when it is now playing."""
		handle = self.handle
		if not handle.paused and handle.source_id == source_id:
			handle.stop()
			return False
		if not handle.paused:
			handle.stop()
		handle.set_source(source_id, src)
		try:
			handle.play()
		except PlaybackError:
			logger.warning("playback of %s failed", source_id)
			raise
		return True

	def report(self, event: str) -> None:
		"""Apply a client-side player event (natural end or user pause)."""
		if event == "ended":
			self.handle.finish()
		elif event == "pause":
			self.handle.stop()
		else:
			raise ValueError(f"unsupported event: {event}")

	def playing_sources(self) -> List[str]:
		return [sid for sid, ctl in self.controls.items() if ctl.is_playing]

	def snapshot(self) -> Dict[str, Any]:
		return {
			"handle": self.handle.snapshot(),
			"controls": {sid: ctl.is_playing for sid, ctl in self.controls.items()},
			"generated": self.generated.sound_ids(),
		}


_sessions: Dict[str, AudioSession] = {}


def get_audio_session(owner_id: str, loader: Loader, generate: Generator) -> AudioSession:
	session = _sessions.get(owner_id)
	if session is None:
		session = AudioSession(loader, generate)
		_sessions[owner_id] = session
	return session


def reset_audio_sessions() -> None:
	_sessions.clear()
