"""SPV envelopes for BSV transactions: Merkle proofs for mined transactions,
processor attestations plus ancestor envelopes for unconfirmed ones."""

__version__ = "1.0.0"

from hashwrap.config import ResolveOptions  # noqa: E402
from hashwrap.core.errors import HashwrapError  # noqa: E402
from hashwrap.core.models import MinedEnvelope, PendingEnvelope  # noqa: E402
from hashwrap.resolver import EnvelopeResolver, get_envelope  # noqa: E402

__all__ = [
    "EnvelopeResolver",
    "HashwrapError",
    "MinedEnvelope",
    "PendingEnvelope",
    "ResolveOptions",
    "get_envelope",
]
