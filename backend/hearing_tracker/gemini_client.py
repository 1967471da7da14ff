from __future__ import annotations
import base64
import io
import wave
import httpx
from typing import Any, Dict, List, Optional
from .settings import settings


class GenerationError(RuntimeError):
	"""The generation backend returned nothing usable."""


def pcm_to_wav(pcm: bytes, *, channels: int = 1, rate: int = 24000, sample_width: int = 2) -> bytes:
	buf = io.BytesIO()
	with wave.open(buf, "wb") as w:
		w.setnchannels(channels)
		w.setsampwidth(sample_width)
		w.setframerate(rate)
		w.writeframes(pcm)
	return buf.getvalue()


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=30, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(settings.openrouter_api_key)
		self._openrouter_api_key = settings.openrouter_api_key
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=30, transport=transport)

	async def generate(self, prompt: str) -> str:
		payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
		return await self._post_payload(payload, fallback_prompt=prompt)

	async def generate_speech(self, prompt: str, *, voices: Optional[Dict[str, str]] = None) -> str:
		"""Speak ``prompt`` with the TTS model; returns a ``data:audio/wav;base64,`` URI.

		Speakers named in the prompt ("Sound:", "Phoneme:") are mapped to voices.
		No fallback provider: OpenRouter has no audio output.
		"""
		voices = voices or {"Sound": settings.tts_sound_voice, "Phoneme": settings.tts_phoneme_voice}
		payload: Dict[str, Any] = {
			"contents": [{"parts": [{"text": prompt}]}],
			"generationConfig": {
				"responseModalities": ["AUDIO"],
				"speechConfig": {
					"multiSpeakerVoiceConfig": {
						"speakerVoiceConfigs": [
							{"speaker": speaker, "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}}}
							for speaker, voice in voices.items()
						]
					}
				},
			},
		}
		r = await self._client.post(self.base_url, params=self._params(), headers=self._headers(), json=payload)
		r.raise_for_status()
		try:
			data = r.json()
			parts: List[Dict[str, Any]] = data["candidates"][0]["content"]["parts"]
			inline = next(p.get("inlineData") or p.get("inline_data") for p in parts if p.get("inlineData") or p.get("inline_data"))
			pcm = base64.b64decode(inline["data"])
		except (KeyError, IndexError, StopIteration, ValueError, TypeError) as e:
			raise GenerationError("no media returned") from e
		if not pcm:
			raise GenerationError("no media returned")
		wav_bytes = pcm_to_wav(pcm, rate=settings.tts_sample_rate)
		return "data:audio/wav;base64," + base64.b64encode(wav_bytes).decode("ascii")

	def _params(self) -> Dict[str, Any]:
		return {"key": self.api_key} if self._auth_in_query else {}

	def _headers(self) -> Dict[str, str]:
		return {} if self._auth_in_query else {"x-goog-api-key": self.api_key}

	async def _post_payload(self, payload: Dict[str, Any], *, fallback_prompt: str) -> str:
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, params=self._params(), headers=self._headers(), json=payload)
			r.raise_for_status()
		except httpx.HTTPError as err:
			last_error = err
		if last_error is None:
			try:
				data = r.json()
				return data["candidates"][0]["content"]["parts"][0]["text"]
			except Exception:
				last_error = GenerationError(f"Unexpected Gemini response: {r.text}")
		if not self._fallback_enabled:
			raise last_error
		return await self._fallback_generate(fallback_prompt, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, prompt: str, primary_error: Optional[Exception]) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error or GenerationError("Fallback requested but OpenRouter is not configured")
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": [{"role": "user", "content": prompt}],
		}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return data["choices"][0]["message"]["content"]
		except Exception as fallback_err:
			if primary_error is not None:
				raise GenerationError(
					f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
				) from fallback_err
			raise fallback_err
