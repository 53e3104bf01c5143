"""
Data models for Solana RPC responses used by the indexer.

SignatureInfo mirrors one getSignaturesForAddress item. ParsedTransaction is
the slice of a jsonParsed getTransaction result the order reconstructors
need: log lines, inner instructions grouped by invoking instruction, block
time, and the token-account -> mint map from token balances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SignatureInfo:
    """
    Normalized transaction signature info from getSignaturesForAddress.

    The RPC returns items newest-first; the last item of a page is the
    cursor for the next (older) page.
    """

    signature: str
    slot: int
    err: Any  # None if success; dict/object from RPC if failed
    block_time: int | None  # Unix timestamp; None if not available
    memo: str | None
    confirmation_status: str | None  # processed | confirmed | finalized

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "SignatureInfo":
        """Build from a single getSignaturesForAddress result item."""
        return cls(
            signature=item["signature"],
            slot=int(item.get("slot") or 0),
            err=item.get("err"),
            block_time=item.get("blockTime"),
            memo=item.get("memo"),
            confirmation_status=item.get("confirmationStatus"),
        )


@dataclass(frozen=True)
class ParsedInstruction:
    """One jsonParsed instruction: program id, program name, parsed type and info."""

    program_id: str
    program: str | None
    type: str | None
    info: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_rpc(cls, raw: dict[str, Any]) -> "ParsedInstruction":
        parsed = raw.get("parsed")
        if isinstance(parsed, dict):
            ix_type = parsed.get("type")
            info = parsed.get("info") if isinstance(parsed.get("info"), dict) else {}
        else:
            # Unparsed (raw data) instructions carry no type/info
            ix_type, info = None, {}
        return cls(
            program_id=str(raw.get("programId") or ""),
            program=raw.get("program"),
            type=ix_type,
            info=info,
        )


@dataclass(frozen=True)
class InnerInstruction:
    """Inner instructions executed on behalf of top-level instruction `index`."""

    index: int
    instructions: tuple[ParsedInstruction, ...]

    @classmethod
    def from_rpc(cls, raw: dict[str, Any]) -> "InnerInstruction":
        return cls(
            index=int(raw["index"]),
            instructions=tuple(
                ParsedInstruction.from_rpc(ix)
                for ix in raw.get("instructions") or []
                if isinstance(ix, dict)
            ),
        )


def _account_keys(message: dict[str, Any]) -> list[str]:
    """Account keys of a jsonParsed message (list of dicts with pubkey, or plain strings)."""
    out: list[str] = []
    for k in message.get("accountKeys") or []:
        if isinstance(k, str):
            out.append(k)
        elif isinstance(k, dict) and k.get("pubkey"):
            out.append(str(k["pubkey"]))
    return out


def _token_account_mints(account_keys: list[str], meta: dict[str, Any]) -> dict[str, str]:
    """Map token account address -> mint from pre/post token balances."""
    mints: dict[str, str] = {}
    for key in ("preTokenBalances", "postTokenBalances"):
        for bal in meta.get(key) or []:
            if not isinstance(bal, dict):
                continue
            idx = bal.get("accountIndex")
            mint = bal.get("mint")
            if mint and isinstance(idx, int) and 0 <= idx < len(account_keys):
                mints[account_keys[idx]] = mint
    return mints


@dataclass(frozen=True)
class ParsedTransaction:
    """Transaction body as consumed by the event decoder and order reconstructors."""

    signature: str
    block_time: int | None
    log_messages: tuple[str, ...]
    inner_instructions: tuple[InnerInstruction, ...] = ()
    token_account_mints: dict[str, str] = field(default_factory=dict)
    slot: int | None = None
    err: Any = None  # meta.err; set when the transaction failed on-chain

    @classmethod
    def from_rpc(cls, raw: dict[str, Any]) -> "ParsedTransaction":
        """
        Build from a jsonParsed getTransaction result.

        Raises ValueError when the payload has no signature.
        """
        tx_obj = raw.get("transaction") or {}
        signatures = tx_obj.get("signatures") or []
        if not signatures:
            raise ValueError("transaction has no signatures")
        message = tx_obj.get("message") or {}
        meta = raw.get("meta") or {}

        block_time = raw.get("blockTime")
        if block_time is not None:
            block_time = int(block_time)

        inner = tuple(
            InnerInstruction.from_rpc(group)
            for group in meta.get("innerInstructions") or []
            if isinstance(group, dict) and "index" in group
        )
        slot = raw.get("slot")
        return cls(
            signature=signatures[0],
            block_time=block_time,
            log_messages=tuple(meta.get("logMessages") or ()),
            inner_instructions=inner,
            token_account_mints=_token_account_mints(_account_keys(message), meta),
            slot=int(slot) if slot is not None else None,
            err=meta.get("err"),
        )

    @property
    def failed(self) -> bool:
        return self.err is not None

    def inner_instructions_for(self, index: int) -> InnerInstruction | None:
        """Inner-instruction group invoked by top-level instruction `index`, if any."""
        for group in self.inner_instructions:
            if group.index == index:
                return group
        return None
