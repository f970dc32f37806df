#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""vunit.py: Run parameterized bytecode through an on-chain virtualization unit
"""

import argparse
import asyncio
import getpass
import json
import logging
import sys
import traceback

import coloredlogs

from argparse import ArgumentParser, Namespace, RawTextHelpFormatter
from typing import Optional

from vunit.bridge import Command, EventSyncBridge, Presenter
from vunit.bridge.bridge import parse_args
from vunit.bytecode.composer import compose
from vunit.bytecode.structure import BytecodeStructure
from vunit.compiler import CompilerApi, load_executor_file
from vunit.ethereum.chains import Chain, get_chain
from vunit.ethereum.interface.rpc.exceptions import EthJsonRpcError
from vunit.exceptions import (
    CriticalError,
    GasRequestCancelled,
    InvalidGas,
    VUnitBaseException,
)
from vunit.models import ExecutorModel, VirtualizationUnitModel, WalletSession
from vunit.support.gas import GasOption, buffered, choose_gas
from vunit.vunit import VUnitConfig
from vunit.workflow import TransactionWorkflow, WorkflowState

from vunit.__version__ import __version__ as VERSION

LOGIN_COMMAND = "login"
COMPILE_COMMAND = "compile"
DEPLOY_COMMAND = "deploy"
RUN_COMMAND = "run"
COMPOSE_COMMAND = "compose"
VERSION_COMMAND = "version"
HELP_COMMAND = "help"

log = logging.getLogger(__name__)

COMMAND_LIST = (
    LOGIN_COMMAND,
    COMPILE_COMMAND,
    DEPLOY_COMMAND,
    RUN_COMMAND,
    COMPOSE_COMMAND,
    VERSION_COMMAND,
    HELP_COMMAND,
)


def exit_with_error(format_, message):
    """
    Exits with error
    :param format_: The format of the message
    :param message: message
    """
    if format_ == "json":
        print(json.dumps({"success": False, "error": str(message)}))
    else:
        log.error(message)
    sys.exit(1)


def output(args: Namespace, result: dict, text: str) -> None:
    if args.__dict__.get("outform", "text") == "json":
        print(json.dumps(result))
    else:
        print(text)


class CliPresenter(Presenter):
    """Logs view snapshots, announcing transaction status changes."""

    def __init__(self):
        self._statuses = {}

    def render(self, view, snapshot):
        log.debug("%s: %s", view.value, json.dumps(snapshot))
        status = snapshot.get("contractTransactionStatus")
        if status is None or self._statuses.get(view) == status:
            return
        self._statuses[view] = status
        if status != "none":
            log.info("%s transaction %s", view.value, status)

    def report_error(self, error):
        log.error(error)


def get_rpc_parser() -> ArgumentParser:
    """
    Get parser which handles RPC flags
    :return: Parser which handles rpc inputs
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "--rpc",
        help="custom RPC settings",
        metavar="HOST:PORT / ganache / infura-[network_name]",
    )
    parser.add_argument(
        "--rpctls", type=bool, default=False, help="RPC connection over TLS"
    )
    parser.add_argument(
        "--infura-id", help="set infura id for onchain analysis", metavar="INFURA_ID"
    )
    parser.add_argument(
        "--account",
        help="account to send transactions from, defaults to the node's first account",
        metavar="ADDRESS",
    )
    parser.add_argument(
        "--chain-id", type=int, help="chain id, read from the node by default"
    )
    return parser


def get_gas_parser() -> ArgumentParser:
    """
    Get parser which handles the gas choice
    :return:
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "--gas-option",
        choices=[option.value for option in GasOption],
        help="gas to send with the transaction, prompts when omitted",
    )
    parser.add_argument(
        "--gas", help="gas for --gas-option custom", metavar="GAS"
    )
    return parser


def get_output_parser() -> ArgumentParser:
    """
    Get parser which handles output
    :return: Parser which handles output
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-o",
        "--outform",
        choices=["text", "json"],
        default="text",
        help="report output format",
        metavar="<text/json>",
    )
    return parser


def get_source_parser() -> ArgumentParser:
    """
    Get parser which handles the compiled source file
    :return:
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("file", help="source file to compile", metavar="FILE")
    parser.add_argument(
        "--nargs",
        type=int,
        required=True,
        help="number of arguments of the entrypoint",
    )
    return parser


def main() -> None:
    """The main CLI interface entry point."""

    rpc_parser = get_rpc_parser()
    gas_parser = get_gas_parser()
    output_parser = get_output_parser()
    source_parser = get_source_parser()

    parser = argparse.ArgumentParser(
        description="Run parameterized bytecode through a virtualization unit"
    )
    parser.add_argument(
        "-v", type=int, help="log level (0-5)", metavar="LOG_LEVEL", default=2
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")
    login_parser = subparsers.add_parser(
        LOGIN_COMMAND, help="Obtains and stores a compiler access token"
    )
    subparsers.add_parser(
        COMPILE_COMMAND,
        help="Compiles a source file into a bytecode structure",
        parents=[source_parser, output_parser],
    )
    subparsers.add_parser(
        DEPLOY_COMMAND,
        help="Deploys a virtualization unit",
        parents=[rpc_parser, gas_parser, output_parser],
        formatter_class=RawTextHelpFormatter,
    )
    run_parser = subparsers.add_parser(
        RUN_COMMAND,
        help="Compiles a source file and executes it with the given arguments",
        parents=[source_parser, rpc_parser, gas_parser, output_parser],
        formatter_class=RawTextHelpFormatter,
    )
    compose_parser = subparsers.add_parser(
        COMPOSE_COMMAND,
        help="Patches arguments into a bytecode structure offline",
        parents=[output_parser],
    )
    subparsers.add_parser(
        VERSION_COMMAND, parents=[output_parser], help="Outputs the version"
    )

    create_login_parser(login_parser)
    create_run_parser(run_parser)
    create_compose_parser(compose_parser)
    subparsers.add_parser(HELP_COMMAND, add_help=False)

    args = parser.parse_args()
    parse_args_and_execute(parser=parser, args=args)


def create_login_parser(parser: ArgumentParser):
    """
    Modify parser to handle the login command
    :param parser:
    :return:
    """
    parser.add_argument("username", help="compiler account", metavar="USERNAME")
    parser.add_argument(
        "--password", help="prompted for when omitted", metavar="PASSWORD"
    )


def create_run_parser(parser: ArgumentParser):
    """
    Modify parser to handle the run command
    :param parser:
    :return:
    """
    parser.add_argument(
        "--args",
        required=True,
        help="runtime arguments as a JSON array, e.g. [1, 2]",
        metavar="JSON",
    )
    parser.add_argument(
        "--contract",
        help="virtualization unit to run against, defaults to the last deployed",
        metavar="ADDRESS",
    )


def create_compose_parser(parser: ArgumentParser):
    """
    Modify parser to handle the compose command
    :param parser:
    :return:
    """
    parser.add_argument(
        "--structure",
        required=True,
        help="bytecode structure as JSON, or @FILE",
        metavar="JSON",
    )
    parser.add_argument(
        "--args",
        required=True,
        help="runtime arguments as a JSON array",
        metavar="JSON",
    )
    parser.add_argument(
        "--slot-width", type=int, help="slot width in hex characters, from config.ini by default"
    )
    parser.add_argument(
        "--obfuscated",
        action="store_true",
        help="the structure's bytecode is obfuscated",
    )


def validate_args(args: Namespace):
    """
    Validate cli args
    :param args:
    :return:
    """
    if args.__dict__.get("v", False):
        if 0 <= args.v < 6:
            log_levels = [
                logging.NOTSET,
                logging.CRITICAL,
                logging.ERROR,
                logging.WARNING,
                logging.INFO,
                logging.DEBUG,
            ]
            coloredlogs.install(
                fmt="%(name)s [%(levelname)s]: %(message)s", level=log_levels[args.v]
            )
        else:
            exit_with_error(
                args.__dict__.get("outform", "text"),
                "Invalid -v value, you can find valid values in usage",
            )

    if args.__dict__.get("gas_option") == GasOption.CUSTOM.value and not args.gas:
        exit_with_error(args.outform, "--gas-option custom requires --gas")


def set_config(args: Namespace) -> VUnitConfig:
    """
    Set config based on args
    :param args:
    :return: modified config
    """
    config = VUnitConfig()
    if args.__dict__.get("infura_id", None):
        config.set_api_infura_id(args.infura_id)
    if args.__dict__.get("rpc", None):
        config.set_api_rpc(rpc=args.rpc, rpctls=args.rpctls)
    elif args.command in (DEPLOY_COMMAND, RUN_COMMAND):
        config.set_api_from_config_path()
    return config


def create_bridge(config: VUnitConfig, args: Namespace) -> EventSyncBridge:
    """
    Builds the wallet session and the models from the config
    :param config:
    :param args:
    :return:
    """
    if config.eth is None:
        raise CriticalError("No RPC connection, use --rpc or set rpc in config.ini")

    account = args.account or config.account
    if not account:
        accounts = config.eth.eth_accounts()
        if not accounts:
            raise CriticalError("The node has no accounts, use --account")
        account = accounts[0]

    chain_id = args.chain_id or config.chain_id or config.eth.eth_chainId()
    chain = get_chain(chain_id) or Chain(chain_id, "Chain {}".format(chain_id), config.eth.url, "")
    log.info("Using account %s on %s", account, chain.name)

    wallet = WalletSession(
        account, config.eth, chain, config.receipt_timeout, config.poll_interval
    )
    return EventSyncBridge(
        CliPresenter(),
        wallet,
        ExecutorModel(slot_width=config.slot_width, obfuscated=config.obfuscated),
        VirtualizationUnitModel(contracts=config.contracts),
        compiler=CompilerApi(config.compiler_url, config.compiler_token),
    )


async def prompt_gas(estimate: str) -> Optional[str]:
    """
    Asks the user for the gas of a transaction
    :param estimate: the gas estimate
    :return: the gas, None to cancel
    """
    question = (
        "Gas estimate is {estimate}.\n"
        "  [1] use the estimate ({estimate})\n"
        "  [2] add a 15% buffer ({buffer})\n"
        "  [3] enter a custom value\n"
        "  [c] cancel\n"
        "> ".format(estimate=estimate, buffer=buffered(estimate))
    )
    while True:
        answer = (await asyncio.to_thread(input, question)).strip().lower()
        try:
            if answer == "1":
                return choose_gas(GasOption.ESTIMATE, estimate)
            if answer == "2":
                return choose_gas(GasOption.BUFFER, estimate)
            if answer == "3":
                custom = await asyncio.to_thread(input, "Gas: ")
                return choose_gas(GasOption.CUSTOM, estimate, custom)
            if answer == "c":
                return None
        except InvalidGas as e:
            print(e)


async def negotiate(
    bridge: EventSyncBridge,
    task: asyncio.Task,
    workflow: TransactionWorkflow,
    supply: Command,
    cancel: Command,
    args: Namespace,
):
    """
    Supplies the gas once the workflow asks for it and waits for the result
    :param bridge:
    :param task: the running invocation
    :param workflow:
    :param supply: command delivering the gas
    :param cancel: command cancelling the negotiation
    :param args:
    :return: the invocation's result
    """
    asked = asyncio.Event()
    unsubscribe = workflow.subscribe(
        lambda event: asked.set()
        if event.state is WorkflowState.AWAITING_GAS or event.terminal
        else None
    )
    if workflow.awaiting_gas:
        asked.set()
    waiter = asyncio.ensure_future(asked.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if workflow.awaiting_gas:
            if args.gas_option:
                gas = choose_gas(
                    GasOption(args.gas_option), workflow.gas_estimate, args.gas
                )
            else:
                gas = await prompt_gas(workflow.gas_estimate)
            if gas is None:
                await bridge.dispatch(cancel)
            else:
                log.info("Sending with %s gas", gas)
                await bridge.dispatch(supply, gas)
    finally:
        waiter.cancel()
        unsubscribe()
    return await task


async def deploy(config: VUnitConfig, args: Namespace) -> None:
    bridge = create_bridge(config, args)
    try:
        task = bridge.claim(await bridge.dispatch(Command.DEPLOY))
        result = await negotiate(
            bridge,
            task,
            bridge.virtualization_unit.workflow,
            Command.SEND,
            Command.CLEAR_DEPLOYMENT,
            args,
        )
        await bridge.join()
    finally:
        bridge.close()
    config.add_contract(result.contract_address)
    output(
        args,
        result.as_dict(),
        "Virtualization unit deployed at {}\nTransaction: {}".format(
            result.contract_address, bridge.wallet.transaction_url(result.transaction_hash)
            or result.transaction_hash,
        ),
    )


async def run(config: VUnitConfig, args: Namespace) -> None:
    bridge = create_bridge(config, args)
    try:
        if args.contract:
            bridge.virtualization_unit.add_contract(args.contract)
        await bridge.dispatch(Command.SELECT_FILE, args.file)
        compilation = bridge.claim(await bridge.dispatch(Command.COMPILE, args.nargs))
        await compilation
        task = bridge.claim(await bridge.dispatch(Command.ESTIMATE, args.args))
        result = await negotiate(
            bridge,
            task,
            bridge.executor.workflow,
            Command.EXECUTE,
            Command.CANCEL_EXECUTION,
            args,
        )
        await bridge.join()
    finally:
        bridge.close()
    transaction_url = bridge.wallet.transaction_url(result.transaction_hash)
    output(
        args,
        dict(result.as_dict(), transactionUrl=transaction_url),
        "Output: {}\nTransaction: {}".format(
            result.output, transaction_url or result.transaction_hash
        ),
    )


def login(config: VUnitConfig, args: Namespace) -> None:
    password = args.password or getpass.getpass("Password: ")
    api = CompilerApi(config.compiler_url)
    try:
        token = api.authenticate(args.username, password)
    finally:
        api.close()
    config.set("compiler_token", token)
    print("Logged in as {}".format(args.username))


def compile_file(config: VUnitConfig, args: Namespace) -> None:
    file = load_executor_file(args.file)
    api = CompilerApi(config.compiler_url, config.compiler_token)
    try:
        structure = api.generate_bytecode_structure(file, args.nargs)
    finally:
        api.close()
    print(json.dumps(structure.as_dict(), indent=4))


def compose_input(config: VUnitConfig, args: Namespace) -> None:
    data = args.structure
    if data.startswith("@"):
        with open(data[1:]) as f:
            data = f.read()
    try:
        structure = BytecodeStructure.from_dict(json.loads(data))
    except ValueError as e:
        raise CriticalError("Invalid bytecode structure JSON: {}".format(e))
    width = args.slot_width or config.slot_width
    composed = compose(structure, parse_args(args.args), width, args.obfuscated or config.obfuscated)
    output(args, {"input": composed}, composed)


def execute_command(config: VUnitConfig, parser: ArgumentParser, args: Namespace):
    """
    Execute command
    :param config:
    :param parser:
    :param args:
    :return:
    """
    if args.command == LOGIN_COMMAND:
        login(config, args)
    elif args.command == COMPILE_COMMAND:
        compile_file(config, args)
    elif args.command == COMPOSE_COMMAND:
        compose_input(config, args)
    elif args.command == DEPLOY_COMMAND:
        asyncio.run(deploy(config, args))
    elif args.command == RUN_COMMAND:
        asyncio.run(run(config, args))
    else:
        parser.print_help()


def parse_args_and_execute(parser: ArgumentParser, args: Namespace) -> None:
    """
    Parses the arguments
    :param parser: The parser
    :param args: The args
    """

    if args.command not in COMMAND_LIST or args.command is None:
        parser.print_help()
        sys.exit()

    if args.command == VERSION_COMMAND:
        if args.outform == "json":
            print(json.dumps({"version_str": VERSION}))
        else:
            print("vunit version {}".format(VERSION))
        sys.exit()

    if args.command == HELP_COMMAND:
        parser.print_help()
        sys.exit()

    validate_args(args)
    outform = args.__dict__.get("outform", "text")
    try:
        config = set_config(args)
        execute_command(config=config, parser=parser, args=args)
    except GasRequestCancelled:
        print("Cancelled")
    except (CriticalError, VUnitBaseException, EthJsonRpcError) as e:
        exit_with_error(outform, str(e))
    except Exception:
        exit_with_error(outform, traceback.format_exc())


if __name__ == "__main__":
    main()
