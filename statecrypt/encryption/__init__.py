# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Purpose-scoped encryption flows for statecrypt.

Public API:

- EncryptionRegistry: Resolved configuration with per-purpose lookups
- setup_singleton / get_singleton / reset_singleton: Process-wide registry
- Flow, PassthroughFlow, ConfigFlow, build_flow: Flow types and default builder
"""

from .flow import ConfigFlow, Flow, FlowBuilder, PassthroughFlow, build_flow
from .registry import (
    EncryptionRegistry,
    get_singleton,
    reset_singleton,
    setup_singleton,
)

__all__ = [
    "ConfigFlow",
    "EncryptionRegistry",
    "Flow",
    "FlowBuilder",
    "PassthroughFlow",
    "build_flow",
    "get_singleton",
    "reset_singleton",
    "setup_singleton",
]
