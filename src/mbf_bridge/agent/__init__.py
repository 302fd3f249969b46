"""Agent subsystem: provisioning, framing and request sessions."""

from mbf_bridge.agent.errors import AgentError as AgentError
from mbf_bridge.agent.errors import BridgeError as BridgeError
from mbf_bridge.agent.errors import ProtocolError as ProtocolError
from mbf_bridge.agent.errors import ProvisioningError as ProvisioningError
from mbf_bridge.agent.errors import TransportError as TransportError
from mbf_bridge.agent.protocol import LogSink as LogSink
from mbf_bridge.agent.provision import overwrite_agent as overwrite_agent
from mbf_bridge.agent.provision import prepare_agent as prepare_agent
from mbf_bridge.agent.session import run_session as run_session
