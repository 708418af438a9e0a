import json
import logging
from typing import Iterator, Optional, Tuple

import click

from .external import MemorySource
from .opcodes import OpCode
from .scope import Address, BlockScope, Transaction
from .state import Account
from .trace import StepsTrace
from .tx import apply_transaction
from .util import decode_hex, encode_hex

# fixed accounts of the throwaway state that code is run against
SENDER = Address.from_hex("0x5e5de5")
CONTRACT = Address.from_hex("0xc0de")
SENDER_BALANCE = 10**21


@click.group()
def cli():
    """Fovea - EVM execution core
    Contribute here: https://github.com/protolambda/fovea
    """


@cli.command()
@click.argument('code', type=click.STRING)
@click.option('--gas', type=click.INT, default=10_000_000, show_default=True, help="Gas limit of the transaction")
@click.option('--value', type=click.INT, default=0, help="Wei sent along with the call")
@click.option('--calldata', type=click.STRING, default="", help="Hex-encoded input data")
@click.option('--trace', is_flag=True, help="Print every executed step")
@click.option('--json', 'as_json', is_flag=True, help="Print the result as JSON")
@click.option('--verbose', is_flag=True, help="Enable debug logging")
def run(code: str, gas: int, value: int, calldata: str, trace: bool, as_json: bool, verbose: bool):
    """Run CODE (hex) in a fresh in-memory state, by sending a call transaction to it"""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    source = MemorySource({
        SENDER: Account(balance=SENDER_BALANCE),
        CONTRACT: Account(code=decode_hex(code)),
    })
    tx = Transaction(
        sender=SENDER,
        nonce=0,
        gas_limit=gas,
        to=CONTRACT,
        value=value,
        data=decode_hex(calldata),
    )
    block = BlockScope(gas_limit=max(gas, BlockScope().gas_limit))
    tracer = StepsTrace() if trace else None

    result = apply_transaction(source, tx, block, tracer=tracer)

    if as_json:
        obj = {
            'status': result.status.name,
            'error': result.error.name if result.error is not None else None,
            'gas_used': result.gas_used,
            'refund': result.refund,
            'output': encode_hex(result.output),
            'logs': [{
                'address': encode_hex(log.address),
                'topics': [encode_hex(t) for t in log.topics],
                'data': encode_hex(log.data),
            } for log in result.logs],
        }
        if tracer is not None:
            obj['steps'] = [step.to_obj() for step in tracer.steps]
        click.echo(json.dumps(obj, indent=2))
        return

    if tracer is not None:
        for step in tracer.steps:
            click.echo("%d %6d %-14s gas: %d stack: %d" % (step.depth, step.pc, step.op_name(), step.gas, step.stack_len))
    click.echo("status: %s" % result.status.name)
    if result.error is not None:
        click.echo("error: %s" % result.error.name)
    click.echo("gas used: %d" % result.gas_used)
    click.echo("output: %s" % encode_hex(result.output))
    for log in result.logs:
        click.echo("log: %s topics=[%s] data=%s" % (
            encode_hex(log.address), ", ".join(encode_hex(t) for t in log.topics), encode_hex(log.data)))


def disassemble(code: bytes) -> Iterator[Tuple[int, str, Optional[bytes]]]:
    """Yields (offset, mnemonic, push immediate) per instruction"""
    pc = 0
    while pc < len(code):
        byt = code[pc]
        try:
            op = OpCode(byt)
        except ValueError:
            yield pc, "0x%02x" % byt, None
            pc += 1
            continue
        n = op.push_size()
        if n > 0:
            yield pc, op.name, code[pc + 1:pc + 1 + n]
        else:
            yield pc, op.name, None
        pc += 1 + n


@cli.command()
@click.argument('code', type=click.STRING)
def disasm(code: str):
    """Print the instructions of CODE (hex)"""
    for offset, name, immediate in disassemble(decode_hex(code)):
        if immediate is None:
            click.echo("%04x: %s" % (offset, name))
        else:
            click.echo("%04x: %s %s" % (offset, name, encode_hex(immediate)))
