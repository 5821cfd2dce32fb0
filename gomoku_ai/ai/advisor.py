"""External move advisor client.

The advisor is an optional remote service (an LLM chat-completion endpoint
in practice) that answers two questions about a position: which cell to
play, and whether to spend a skill. Replies are free text that must contain
one JSON object; everything that comes back is treated as untrusted and
validated before the pipeline may act on it.

Usage:
    advisor = MoveAdvisor.from_config(config)
    if advisor is not None:
        request = build_request(board, CellState.PLAYER_B, ["remove"], recent)
        reply = await advisor.suggest_move(request, board)

Failure handling:
    - each attempt is bounded by ``timeout_seconds``
    - timeouts, transport failures and unreadable response bodies are retried
      with linear backoff (``backoff_seconds * attempt``) up to ``max_retries``
      attempts; the last failure is raised
    - replies whose JSON or content fails validation are not retried
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Sequence

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from ..board_manager import BoardStore
from ..config import EngineConfig
from ..errors import (
    AdvisorError,
    AdvisorResponseError,
    AdvisorTimeoutError,
    AdvisorTransportError,
    AdvisorValidationError,
)
from ..models import (
    AdvisorMoveResponse,
    AdvisorRequest,
    AdvisorSkillResponse,
    CellState,
    Move,
    MoveRecord,
    SkillType,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AdvisorTransport",
    "HttpAdvisorTransport",
    "MoveAdvisor",
    "build_request",
    "extract_json",
    "format_board",
    "format_history",
]

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

PLAYER_NAMES = {1: "Black", 2: "White"}

SKILL_DESCRIPTIONS = {
    SkillType.SCATTER.value: "scatter: relocate up to 5 random stones to random empty cells",
    SkillType.REMOVE.value: "remove: clear up to 3 random stones from the board",
    SkillType.REWIND.value: "rewind: restore the position from two snapshots ago",
}


class AdvisorTransport(Protocol):
    """Sends one prompt and returns the raw reply text."""

    async def complete(self, prompt: str) -> str:
        ...


class HttpAdvisorTransport:
    """Chat-completion transport over HTTP.

    Speaks the DashScope text-generation wire format: the prompt goes in
    ``input.messages`` and the reply comes back in
    ``output.choices[0].message.content``. A top-level ``choices`` list is
    accepted as well.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        model: str = "qwen-plus",
        timeout_seconds: float = 5.0,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        top_p: float = 0.9,
    ):
        self.url = url
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.top_p = top_p

    def build_body(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "input": {"messages": [{"role": "user", "content": prompt}]},
            "parameters": {
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
                "top_p": self.top_p,
            },
        }

    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-DashScope-SSE": "disable",
        }

    @staticmethod
    def extract_content(data: Any) -> str:
        try:
            container = data["output"] if isinstance(data, dict) and "output" in data else data
            content = container["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AdvisorResponseError(f"unexpected advisor response shape: {e}") from e
        if not isinstance(content, str):
            raise AdvisorResponseError("advisor message content is not text")
        return content

    async def complete(self, prompt: str) -> str:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, json=self.build_body(prompt), headers=self.headers()) as resp:
                    text = (await resp.read()).decode("utf-8", errors="replace")
                    if resp.status != 200:
                        raise AdvisorTransportError(
                            f"advisor returned HTTP {resp.status}: {text[:200]}",
                            status=resp.status,
                        )
        except aiohttp.ClientError as e:
            raise AdvisorTransportError(f"advisor request failed: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise AdvisorResponseError(f"advisor body is not JSON: {e}") from e
        return self.extract_content(data)


# -----------------------------------------------------------------------------
# Prompt construction
# -----------------------------------------------------------------------------


def format_board(board: Sequence[Sequence[int]]) -> str:
    """Grid with right-aligned column and row indices, cells as 0/1/2."""
    size = len(board)
    lines = ["   " + "".join(str(i).rjust(2) for i in range(size))]
    for x, row in enumerate(board):
        lines.append(str(x).rjust(2) + " " + "".join(str(int(cell)).rjust(2) for cell in row))
    return "\n".join(lines) + "\n"


def format_history(moves: Sequence[MoveRecord], limit: int = 6) -> str:
    if not moves:
        return "No moves yet"
    recent = list(moves)[-limit:]
    return "\n".join(
        f"{i}. {PLAYER_NAMES.get(m.player, str(m.player))} plays ({m.x}, {m.y})"
        for i, m in enumerate(recent, start=1)
    )


def build_request(
    board: BoardStore,
    player: CellState,
    available_skills: Sequence[SkillType],
    recent_moves: Sequence[Move],
) -> AdvisorRequest:
    return AdvisorRequest(
        board=board.to_list(),
        current_player=int(player),
        available_skills=[SkillType(s).value for s in available_skills],
        recent_moves=[MoveRecord(x=m.x, y=m.y, player=int(m.player)) for m in recent_moves],
    )


def move_prompt(request: AdvisorRequest) -> str:
    size = len(request.board)
    me = PLAYER_NAMES.get(request.current_player, str(request.current_player))
    skills = ", ".join(request.available_skills) or "none"
    return (
        f"You are a master Gomoku player on a {size}x{size} board; five in a row wins.\n"
        f"You play {me} ({request.current_player}); empty cells are 0. "
        f"Coordinates run from (0, 0) to ({size - 1}, {size - 1}), x is the row.\n\n"
        f"Board:\n{format_board(request.board)}\n"
        f"Recent moves:\n{format_history(request.recent_moves)}\n\n"
        f"Available skills: {skills}\n\n"
        "Priorities: win now; block the opponent's five; make or block a four-three "
        "or double-three; block open fours and open threes; build your own threats; "
        "prefer the centre.\n\n"
        'Reply with JSON only: {"x": <row>, "y": <column>, "reasoning": "<why>"}'
    )


def skill_prompt(request: AdvisorRequest) -> str:
    described = "\n".join(
        f"- {SKILL_DESCRIPTIONS.get(name, name)}" for name in request.available_skills
    )
    return (
        "You decide whether a Gomoku player should spend a one-time skill this turn.\n\n"
        f"Board:\n{format_board(request.board)}\n"
        f"Recent moves:\n{format_history(request.recent_moves)}\n\n"
        f"Available skills:\n{described}\n\n"
        "Never spend a skill while ahead. Rewind is the most valuable answer to a "
        "decisive opponent threat; remove is a gamble when losing; scatter is a last resort.\n\n"
        'Reply with JSON only: {"useSkill": true|false, "skillType": "<skill or null>", "reasoning": "<why>"}'
    )


def extract_json(text: str) -> Dict[str, Any]:
    """Pull the outermost ``{...}`` object out of free text."""
    match = _JSON_OBJECT.search(text or "")
    if match is None:
        raise AdvisorResponseError("no JSON object in advisor reply", context={"reply": (text or "")[:200]})
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AdvisorResponseError(f"advisor JSON does not parse: {e}", context={"reply": text[:200]}) from e
    if not isinstance(data, dict):
        raise AdvisorResponseError("advisor JSON is not an object")
    return data


# -----------------------------------------------------------------------------
# Advisor
# -----------------------------------------------------------------------------


class MoveAdvisor:
    """Consults an advisor transport with timeout, retries and validation."""

    def __init__(
        self,
        transport: AdvisorTransport,
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.transport = transport
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: EngineConfig) -> Optional["MoveAdvisor"]:
        """Advisor wired to the configured endpoint, or None when unset."""
        if not config.advisor_enabled:
            return None
        transport = HttpAdvisorTransport(
            url=config.advisor_url,
            api_key=config.advisor_api_key or "",
            model=config.advisor_model,
            timeout_seconds=config.advisor_timeout_seconds,
        )
        return cls(
            transport,
            timeout_seconds=config.advisor_timeout_seconds,
            max_retries=config.advisor_max_retries,
            backoff_seconds=config.advisor_backoff_seconds,
        )

    async def ask(self, prompt: str) -> str:
        """Send ``prompt`` and return the reply text, retrying failed attempts."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await asyncio.wait_for(self.transport.complete(prompt), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                error: AdvisorError = AdvisorTimeoutError(
                    f"advisor did not answer within {self.timeout_seconds}s",
                    timeout_seconds=self.timeout_seconds,
                )
            except (AdvisorTransportError, AdvisorResponseError) as e:
                error = e
            logger.warning("Advisor attempt %d/%d failed: %s", attempt, self.max_retries, error)
            if attempt >= self.max_retries:
                raise error
            await self._sleep(self.backoff_seconds * attempt)

    async def suggest_move(self, request: AdvisorRequest, board: BoardStore) -> AdvisorMoveResponse:
        """Ask for a cell; raises unless it is an in-bounds empty cell."""
        data = extract_json(await self.ask(move_prompt(request)))
        try:
            reply = AdvisorMoveResponse.model_validate(data)
        except PydanticValidationError as e:
            raise AdvisorValidationError(f"advisor move reply invalid: {e.error_count()} errors") from e
        if not board.in_bounds(reply.x, reply.y):
            raise AdvisorValidationError(
                f"advisor move ({reply.x}, {reply.y}) is off the board",
                context={"x": reply.x, "y": reply.y},
            )
        if not board.is_empty_cell(reply.x, reply.y):
            raise AdvisorValidationError(
                f"advisor move ({reply.x}, {reply.y}) is occupied",
                context={"x": reply.x, "y": reply.y},
            )
        return reply

    async def suggest_skill(self, request: AdvisorRequest) -> AdvisorSkillResponse:
        """Ask whether to use a skill; the named skill must be available."""
        data = extract_json(await self.ask(skill_prompt(request)))
        try:
            reply = AdvisorSkillResponse.model_validate(data)
        except PydanticValidationError as e:
            raise AdvisorValidationError(f"advisor skill reply invalid: {e.error_count()} errors") from e
        if reply.use_skill and reply.skill_type not in request.available_skills:
            raise AdvisorValidationError(
                f"advisor chose unavailable skill {reply.skill_type!r}",
                context={"available": list(request.available_skills)},
            )
        return reply
