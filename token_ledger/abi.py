"""
token_ledger.abi: call-surface descriptors, selectors and dispatch.

A logic class publishes its callable surface as ``ABI``: a tuple of
`AbiFunction` entries keyed by canonical signature
(``"burn(address,uint256)"``). The proxy resolves a call through this table,
never through arbitrary attribute access, so overloaded display names map to
distinct Python methods without ambiguity:

    burn(uint256)          -> TokenLedger.burn
    burn(address,uint256)  -> TokenLedger.burn_as_burner

Call modes
----------
- ``view``:   method(*args)                 no caller, no state change
- ``call``:   method(caller, *args)         caller is the first argument
- ``init``:   method(*args, caller=caller)  initializers keep the caller as
                                            keyword so their positional
                                            signature matches the ABI
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Sequence, Tuple

from .address import Address, keccak256
from .errors import UnknownFunction

__all__ = [
    "AbiFunction",
    "EncodedCall",
    "selector",
    "abi_table",
    "resolve",
    "encode_function_call",
    "invoke",
]

VIEW = "view"
CALL = "call"
INIT = "init"


@dataclass(frozen=True)
class AbiFunction:
    signature: str
    method: str
    mode: str = CALL

    @property
    def name(self) -> str:
        return self.signature.split("(", 1)[0]

    @property
    def arity(self) -> int:
        inner = self.signature[self.signature.index("(") + 1 : -1]
        return 0 if not inner else inner.count(",") + 1

    @property
    def selector(self) -> bytes:
        return selector(self.signature)


@dataclass(frozen=True)
class EncodedCall:
    """A resolved function plus its arguments, ready to run against storage."""

    function: AbiFunction
    args: Tuple[Any, ...] = field(default_factory=tuple)

    @property
    def data(self) -> str:
        """Selector as 0x-hex; a compact identifier for logs and records."""
        return "0x" + self.function.selector.hex()

    def to_dict(self) -> Dict[str, Any]:
        return {"signature": self.function.signature, "selector": self.data, "args": list(self.args)}


def selector(signature: str) -> bytes:
    """First four bytes of keccak256(signature)."""
    return keccak256(signature.replace(" ", ""))[:4]


def abi_table(target: Any) -> Dict[str, AbiFunction]:
    entries: Iterable[AbiFunction] = getattr(target, "ABI", ()) or ()
    return {fn.signature: fn for fn in entries}


def resolve(target: Any, name_or_signature: str, argc: int) -> AbiFunction:
    """
    Find the ABI entry for a full signature, or for a bare name when the name
    plus arity picks exactly one entry.
    """
    table = abi_table(target)
    key = name_or_signature.replace(" ", "")
    if "(" in key:
        fn = table.get(key)
        if fn is None:
            raise UnknownFunction(key)
        return fn
    matches = [fn for fn in table.values() if fn.name == key and fn.arity == argc]
    if len(matches) != 1:
        raise UnknownFunction(f"{key}/{argc}")
    return matches[0]


def encode_function_call(target: Any, name_or_signature: str, args: Sequence[Any]) -> EncodedCall:
    """Bind `args` to a function of `target` (a logic class or instance)."""
    fn = resolve(target, name_or_signature, len(args))
    if len(args) != fn.arity:
        raise UnknownFunction(f"{fn.signature} with {len(args)} args")
    return EncodedCall(function=fn, args=tuple(args))


def invoke(instance: Any, caller: Address, call: EncodedCall) -> Any:
    fn = call.function
    method = getattr(instance, fn.method)
    if fn.mode == VIEW:
        return method(*call.args)
    if fn.mode == INIT:
        return method(*call.args, caller=caller)
    return method(caller, *call.args)
