"""oxenv - the bridge between build config scripts and native build state."""

from .bridge import OpaqueValue as OpaqueValue
from .bridge import downcast_mut as downcast_mut
from .bridge import downcast_ref as downcast_ref
from .bridge import get_context as get_context
from .bridge import wrap as wrap
from .context import HOST_TRIPLE as HOST_TRIPLE
from .context import BuildContext as BuildContext
from .context import ExecutionContext as ExecutionContext
from .distribution import DistributionCache as DistributionCache
from .environment import Environment as Environment
from .environment import TypeValues as TypeValues
from .errors import BorrowError as BorrowError
from .errors import ContextResolutionError as ContextResolutionError
from .errors import PathResolutionError as PathResolutionError
from .errors import ScriptError as ScriptError
from .errors import TypeMismatchError as TypeMismatchError
from .errors import UnknownKeyError as UnknownKeyError
from .loader import EvaluationResult as EvaluationResult
from .loader import evaluate_config as evaluate_config
from .loader import evaluate_file as evaluate_file
from .registrar import global_environment as global_environment
from .state import StateAccessor as StateAccessor
from .state import read_build_state as read_build_state
