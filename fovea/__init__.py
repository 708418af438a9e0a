from .errors import FoveaError, InvalidTransaction, FatalInconsistency
from .exec_mode import ExecMode
from .external import MemorySource, StateSource, Precompile
from .interpreter import EVM
from .scope import Address, AccessListEntry, BlockScope, CallResult, Log, Transaction
from .state import Account, WorldState
from .substate import SubState
from .tx import TxResult, TxStatus, apply_transaction
