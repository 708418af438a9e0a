# See geth/params/protocol_params.go, London rules only

CHAIN_ID = 1  # Default chain id reported by CHAINID, overridable per block scope.

STACK_LIMIT = 1024  # Maximum size of VM stack allowed.
CALL_CREATE_DEPTH = 1024  # Maximum depth of call/create stack.
MAX_CODE_SIZE = 24576  # Maximum bytecode to permit for a contract (EIP-170)
CREATED_ACCOUNT_NONCE = 0  # Nonce a freshly created contract account starts with.
UINT64_MAX = (1 << 64) - 1

# Tiers of the static gas schedule
GAS_ZERO = 0
GAS_QUICK_STEP = 2
GAS_FASTEST_STEP = 3
GAS_FAST_STEP = 5
GAS_MID_STEP = 8
GAS_SLOW_STEP = 10
GAS_EXT_STEP = 20

TX_GAS = 21000  # Per transaction not creating a contract. NOTE: Not payable on data of calls between transactions.
TX_GAS_CONTRACT_CREATION = 53000  # Per transaction that creates a contract. NOTE: Not payable on data of calls between transactions.
TX_DATA_ZERO_GAS = 4  # Per byte of data attached to a transaction that equals zero. NOTE: Not payable on data of calls between transactions.
TX_DATA_NON_ZERO_GAS_EIP2028 = 16  # Per byte of non zero data attached to a transaction after EIP 2028 (part in Istanbul)
TX_ACCESS_LIST_ADDRESS_GAS = 2400  # Per address specified in EIP 2930 access list
TX_ACCESS_LIST_STORAGE_KEY_GAS = 1900  # Per storage key specified in EIP 2930 access list

MEMORY_GAS = 3  # Times the address of the (highest referenced byte in memory + 1). NOTE: referencing happens on read, write and in instructions such as RETURN and CALL.
QUAD_COEFF_DIV = 512  # Divisor for the quadratic particle of the memory cost equation.
COPY_GAS = 3  # Per word copied by the *COPY instructions

SHA3_GAS = 30  # Once per SHA3 operation.
SHA3_WORD_GAS = 6  # Once per word of the SHA3 operation's data.

EXP_GAS = 10  # Once per EXP instruction
EXP_BYTE_EIP158 = 50  # Times ceil(log256(exponent)) for the EXP instruction, since Spurious Dragon.

LOG_GAS = 375  # Per LOG* operation.
LOG_TOPIC_GAS = 375  # Multiplied by the * of the LOG*, per LOG transaction. e.g. LOG0 incurs 0 * c_tx_Log_Topic_Gas, LOG4 incurs 4 * c_tx_Log_Topic_Gas.
LOG_DATA_GAS = 8  # Per byte in a LOG* operation's data.

JUMPDEST_GAS = 1  # Once per JUMPDEST operation.
BLOCKHASH_GAS = GAS_EXT_STEP

CALL_VALUE_TRANSFER_GAS = 9000  # Paid for CALL when the value transfer is non-zero.
CALL_NEW_ACCOUNT_GAS = 25000  # Paid for CALL when the destination address didn't exist prior.
CALL_STIPEND = 2300  # Free gas given at beginning of call.

CREATE_GAS = 32000  # Once per CREATE operation & contract-creation transaction.
CREATE2_GAS = 32000  # Once per CREATE2 operation
CREATE_DATA_GAS = 200  # Per byte of deployed contract code

SELFDESTRUCT_GAS_EIP150 = 5000  # Cost of SELFDESTRUCT post EIP 150 (Tangerine)
# Create_By_Selfdestruct_Gas is used when the refunded account is one that does
# not exist. This logic is similar to call.
CREATE_BY_SELFDESTRUCT_GAS = 25000

SSTORE_SENTRY_GAS_EIP2200 = 2300  # Minimum gas required to be present for an SSTORE call, not consumed
SSTORE_SET_GAS_EIP2200 = 20000  # Once per SSTORE operation from clean zero to non-zero
SSTORE_RESET_GAS_EIP2200 = 5000  # Once per SSTORE operation from clean non-zero to something else

COLD_ACCOUNT_ACCESS_COST_EIP2929 = 2600  # COLD_ACCOUNT_ACCESS_COST
COLD_SLOAD_COST_EIP2929 = 2100  # COLD_SLOAD_COST
WARM_STORAGE_READ_COST_EIP2929 = 100  # WARM_STORAGE_READ_COST

# In EIP-2200: Sstore_Reset_Gas was 5000.
# In EIP-2929: Sstore_Reset_Gas was changed to '5000 - COLD_SLOAD_COST'.
# In EIP-3529: SSTORE_CLEARS_SCHEDULE is defined as SSTORE_RESET_GAS + ACCESS_LIST_STORAGE_KEY_COST
# WHICH BECOMES: 5000 - 2100 + 1900 = 4800
SSTORE_CLEARS_SCHEDULE_REFUND_EIP3529 = SSTORE_RESET_GAS_EIP2200 - COLD_SLOAD_COST_EIP2929 + TX_ACCESS_LIST_STORAGE_KEY_GAS

# The Refund Quotient is the cap on how much of the used gas can be refunded. Before EIP-3529,
# up to half the consumed gas could be refunded. Redefined as 1/5th in EIP-3529
REFUND_QUOTIENT_EIP3529 = 5
