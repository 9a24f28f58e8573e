from __future__ import annotations
import httpx
from typing import Any, Dict, List, Optional
from .settings import settings

class CompletionClient:
	def __init__(self, api_key: Optional[str] = None, *, provider: Optional[str] = None, base_url: Optional[str] = None, model: Optional[str] = None) -> None:
		self.provider = provider or settings.llm_provider
		if self.provider == "gemini":
			self.api_key = api_key or settings.gemini_api_key
			if not self.api_key:
				raise ValueError("GEMINI_API_KEY is not configured")
			self.model = model or settings.gemini_model
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
		elif self.provider == "openai":
			self.api_key = api_key or settings.openai_api_key
			if not self.api_key:
				raise ValueError("OPENAI_API_KEY is not configured")
			self.model = model or settings.openai_model
			self.base_url = base_url or settings.openai_base_url
		else:
			raise ValueError(f"Unknown LLM provider: {self.provider}")
		self.temperature = settings.llm_temperature
		self._client = httpx.AsyncClient(timeout=settings.llm_timeout_seconds)

	async def generate(self, prompt: str, *, system: Optional[str] = None, json_mode: bool = True, max_tokens: Optional[int] = None) -> str:
		if self.provider == "gemini":
			return await self._post_gemini(prompt, system=system, json_mode=json_mode, max_tokens=max_tokens)
		return await self._post_openai(prompt, system=system, json_mode=json_mode, max_tokens=max_tokens)

	async def _post_openai(self, prompt: str, *, system: Optional[str], json_mode: bool, max_tokens: Optional[int]) -> str:
		messages: List[Dict[str, str]] = []
		if system:
			messages.append({"role": "system", "content": system})
		messages.append({"role": "user", "content": prompt})
		payload: Dict[str, Any] = {"model": self.model, "messages": messages, "temperature": self.temperature}
		if json_mode:
			payload["response_format"] = {"type": "json_object"}
		if max_tokens is not None:
			payload["max_tokens"] = max_tokens
		headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
		r = await self._client.post(self.base_url, headers=headers, json=payload)
		r.raise_for_status()
		try:
			data = r.json()
			content = data["choices"][0]["message"]["content"]
		except Exception:
			raise RuntimeError(f"Unexpected OpenAI response: {r.text}")
		if not content:
			raise RuntimeError("OpenAI returned an empty completion")
		return content

	async def _post_gemini(self, prompt: str, *, system: Optional[str], json_mode: bool, max_tokens: Optional[int]) -> str:
		payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
		if system:
			payload["systemInstruction"] = {"parts": [{"text": system}]}
		generation_config: Dict[str, Any] = {"temperature": self.temperature}
		if json_mode:
			generation_config["responseMimeType"] = "application/json"
		if max_tokens is not None:
			generation_config["maxOutputTokens"] = max_tokens
		payload["generationConfig"] = generation_config
		r = await self._client.post(self.base_url, params={"key": self.api_key}, json=payload)
		r.raise_for_status()
		try:
			data = r.json()
			return data["candidates"][0]["content"]["parts"][0]["text"]
		except Exception:
			raise RuntimeError(f"Unexpected Gemini response: {r.text}")

	async def aclose(self) -> None:
		await self._client.aclose()
