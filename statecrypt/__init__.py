"""
statecrypt - layered encryption configuration for state, plan and backend data

statecrypt works out, for each purpose a state-management tool needs to
protect, one effective encryption configuration from several independently
supplied sources, and hands it to whatever builds the encrypt/decrypt flow.

Purposes:
  - backend: the remote state channel
  - statefile: the on-disk state file
  - planfile: the plan file
  - remote_state:<name>: a named remote state data source

Sources, lowest precedence first:
  - The root module's own declaration
  - Override documents, in the order given (later files win)
  - The TF_STATE_ENCRYPTION environment variable (JSON or YAML)

Each purpose may nest fallback configurations, tried in order when
decrypting, which is what makes key rotation possible.

Quick Start
-----------
Validate an override document:

    $ statecrypt validate encryption.yaml

Print the effective configuration:

    $ statecrypt resolve --encryption-config base.yaml --encryption-config rotate.yaml

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
core : module
    setup_encryption() and resolve_encryption() orchestration.
config : package
    Document loading, decoding, merging and multi-source resolution.
encryption : package
    Flow registry and flow types.
diagnostics : module
    Source-attributed diagnostics.

Public API
----------
    from statecrypt.core import setup_encryption, resolve_encryption
    from statecrypt.config import resolve_config_map, ConfigMap, ConfigNode
    from statecrypt.encryption import EncryptionRegistry, get_singleton
    from statecrypt.validation import validate_encryption_config
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"
__description__ = "Layered state encryption configuration resolver"

# Re-export commonly used functions for convenience
from statecrypt.config import ConfigMap, ConfigNode, resolve_config_map
from statecrypt.core import resolve_encryption, setup_encryption
from statecrypt.encryption import EncryptionRegistry, get_singleton
from statecrypt.validation import validate_encryption_config

__all__ = [
    "__version__",
    "__license__",
    "__description__",
    "ConfigMap",
    "ConfigNode",
    "EncryptionRegistry",
    "get_singleton",
    "resolve_config_map",
    "resolve_encryption",
    "setup_encryption",
    "validate_encryption_config",
]
