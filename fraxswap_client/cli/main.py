"""Main CLI entry point"""

import sys
import json
import logging
import argparse
import threading
from pathlib import Path

from ..contracts.erc20 import ERC20
from ..core.config import Config
from ..core.connection import Web3Manager
from ..core.exceptions import FraxSwapError
from ..core.session import get_session
from ..core.types import Amount
from ..operations.orchestrator import CancelToken, TransactionOrchestrator


def get_results_dir():
    """Get results directory, create if needed"""
    results_dir = Path.cwd() / "results"
    results_dir.mkdir(exist_ok=True)
    return results_dir


def save_result(filename, data):
    """Save result to JSON file in results directory"""
    results_dir = get_results_dir()
    filepath = results_dir / filename
    with open(filepath, "w") as f:
        json.dump(data, f, indent=2, default=str)
    return filepath


def prompt_confirm(description):
    """Ask the user to approve a signature"""
    answer = input(f"Sign {description}? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def to_base_units(manager, token_address, amount, raw=False):
    """Convert a CLI amount to base units using the token's decimals"""
    if raw:
        try:
            return Amount(int(amount))
        except ValueError:
            return Amount.from_human(amount, 0)
    decimals = ERC20(manager, token_address).decimals
    return Amount.from_human(amount, decimals)


def connect(args, require_signer=True):
    """Create the wallet provider and connect the process session"""
    confirm = None if args.yes else prompt_confirm
    manager = Web3Manager(require_signer=require_signer, confirm=confirm)
    if require_signer:
        get_session().connect(manager)
    return manager


def run_operation(operation, *op_args):
    """
    Run an orchestrated operation in a worker thread so Ctrl-C cancels it
    before the next step instead of killing the process mid-sequence.
    """
    cancel = CancelToken()
    result = {}

    def target():
        try:
            result["outcome"] = operation(*op_args, cancel=cancel)
        except BaseException as e:
            result["error"] = e

    worker = threading.Thread(target=target, daemon=True)
    worker.start()
    while worker.is_alive():
        try:
            worker.join(0.2)
        except KeyboardInterrupt:
            if not cancel.cancelled:
                print("\nCancelling after the current step...", file=sys.stderr)
                cancel.cancel()
    if "error" in result:
        raise result["error"]
    return result["outcome"]


def report(outcome, name):
    """Print an outcome, save it, and return the exit code"""
    data = outcome.to_dict()
    if outcome.ok:
        print(f"\nSuccess!")
        print(f"Tx: {outcome.tx_hash}")
        print(f"Estimated gas: {outcome.gas_estimate.gas}")
        for tx in outcome.approvals:
            print(f"Approval tx: {tx}")
        filepath = save_result(f"{name}_{outcome.tx_hash[:10]}.json", data)
        print(f"\nSaved to {filepath}", file=sys.stderr)
        return 0

    print(f"\n{outcome.reason}: {outcome.error}")
    if outcome.approvals:
        print("Approvals already confirmed remain in effect:")
        for tx in outcome.approvals:
            print(f"  {tx}")
    print(json.dumps(data, indent=2, default=str))
    return 1


def cmd_account(args):
    """Connect and show the active account"""
    connect(args)
    print(get_session().require_account())
    return 0


def cmd_tokens(args):
    """List the token registry"""
    for symbol, address in Config().tokens:
        print(f"  {symbol:<8} {address}")
    return 0


def _owner(args, manager):
    owner = args.owner or manager.address
    if not owner:
        raise FraxSwapError("No owner given and no PUBLIC_KEY/PRIVATE_KEY configured")
    return owner


def cmd_allowance(args):
    """Show the exchange's allowance for a token"""
    manager = connect(args, require_signer=False)
    config = Config()
    token = ERC20(manager, config.get_token_address(args.token))
    owner = _owner(args, manager)
    allowance = token.get_allowance(owner, config.exchange_address)
    print(f"{token.symbol} allowance for {config.exchange_address}: "
          f"{allowance.to_human(token.decimals)} ({allowance} base units)")
    return 0


def cmd_balance(args):
    """Show a token balance"""
    manager = connect(args, require_signer=False)
    token = ERC20(manager, Config().get_token_address(args.token))
    balance = token.balance_of(_owner(args, manager))
    print(f"{token.symbol}: {balance.to_human(token.decimals)} ({balance} base units)")
    return 0


def cmd_swap(args):
    """Swap tokens"""
    manager = connect(args)
    config = Config()
    token_in = config.get_token_address(args.token_in)
    token_out = config.get_token_address(args.token_out)
    amount_in = to_base_units(manager, token_in, args.amount, args.raw)

    print(f"Swapping {args.amount} {args.token_in} -> {args.token_out}")
    orchestrator = TransactionOrchestrator(manager)
    outcome = run_operation(
        orchestrator.swap, token_in, token_out, amount_in, args.position_id
    )
    return report(outcome, "swap")


def cmd_add_liquidity(args):
    """Add liquidity"""
    manager = connect(args)
    config = Config()
    token_in = config.get_token_address(args.token_in)
    token_out = config.get_token_address(args.token_out)
    amount_in = to_base_units(manager, token_in, args.amount, args.raw)

    print(f"Adding {args.amount} {args.token_in} to {args.token_in}/{args.token_out}")
    orchestrator = TransactionOrchestrator(manager)
    outcome = run_operation(orchestrator.add_liquidity, token_in, token_out, amount_in)
    return report(outcome, "add_liquidity")


def cmd_remove_liquidity(args):
    """Remove liquidity"""
    manager = connect(args)
    config = Config()
    token_in = config.get_token_address(args.token_in)
    token_out = config.get_token_address(args.token_out)
    amount = to_base_units(manager, token_in, args.amount, args.raw)

    print(f"Removing position {args.position_id} ({args.token_in}/{args.token_out})")
    orchestrator = TransactionOrchestrator(manager)
    outcome = run_operation(
        orchestrator.remove_liquidity, args.position_id, token_in, token_out, amount
    )
    return report(outcome, "remove_liquidity")


def cmd_claim_rewards(args):
    """Claim rewards"""
    manager = connect(args)
    reward_token = Config().get_token_address(args.reward_token)

    print(f"Claiming rewards of position {args.position_id} in {args.reward_token}")
    orchestrator = TransactionOrchestrator(manager)
    outcome = run_operation(orchestrator.claim_rewards, args.position_id, reward_token)
    return report(outcome, "claim_rewards")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="fraxswap",
        description="FraxSwap client - swap and manage liquidity from your wallet",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""examples:
  fraxswap tokens                                # List known tokens
  fraxswap allowance LINK                        # Exchange allowance for LINK
  fraxswap swap LINK MATIC 1.5                   # Swap 1.5 LINK for MATIC
  fraxswap add LINK MATIC 10                     # Add 10 LINK of liquidity
  fraxswap remove 3 LINK MATIC 10                # Remove position 3
  fraxswap claim 3 RCOIN                         # Claim rewards of position 3

configuration:
  RPC_URL           Set in .env file
  wallet            Set PUBLIC_KEY and PRIVATE_KEY in wallet.env
  EXCHANGE_ADDRESS  Overrides config/exchange.json
  tokens            config/tokens.json
  gas               gas_config.json
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-y", "--yes", action="store_true", help="Sign without prompting")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    account_parser = subparsers.add_parser("account", help="Connect and show the account")
    account_parser.set_defaults(func=cmd_account)

    tokens_parser = subparsers.add_parser("tokens", help="List known tokens")
    tokens_parser.set_defaults(func=cmd_tokens)

    allowance_parser = subparsers.add_parser("allowance", help="Show exchange allowance")
    allowance_parser.add_argument("token", help="Token symbol or address")
    allowance_parser.add_argument("--owner", help="Owner address (default: your wallet)")
    allowance_parser.set_defaults(func=cmd_allowance)

    balance_parser = subparsers.add_parser("balance", help="Show token balance")
    balance_parser.add_argument("token", help="Token symbol or address")
    balance_parser.add_argument("--owner", help="Owner address (default: your wallet)")
    balance_parser.set_defaults(func=cmd_balance)

    swap_parser = subparsers.add_parser("swap", help="Swap tokens")
    swap_parser.add_argument("token_in", help="Token to send")
    swap_parser.add_argument("token_out", help="Token to receive")
    swap_parser.add_argument("amount", help="Amount of token_in")
    swap_parser.add_argument("--position-id", type=int, default=None,
                             help="Position id (default from config/exchange.json)")
    swap_parser.add_argument("--raw", action="store_true", help="Amount is in base units")
    swap_parser.set_defaults(func=cmd_swap)

    add_parser = subparsers.add_parser("add", help="Add liquidity")
    add_parser.add_argument("token_in", help="Token to deposit")
    add_parser.add_argument("token_out", help="Paired token")
    add_parser.add_argument("amount", help="Amount of token_in")
    add_parser.add_argument("--raw", action="store_true", help="Amount is in base units")
    add_parser.set_defaults(func=cmd_add_liquidity)

    remove_parser = subparsers.add_parser("remove", help="Remove liquidity")
    remove_parser.add_argument("position_id", type=int, help="Position id")
    remove_parser.add_argument("token_in", help="Token in")
    remove_parser.add_argument("token_out", help="Token out")
    remove_parser.add_argument("amount", help="Allowance required on both tokens")
    remove_parser.add_argument("--raw", action="store_true", help="Amount is in base units")
    remove_parser.set_defaults(func=cmd_remove_liquidity)

    claim_parser = subparsers.add_parser("claim", help="Claim rewards")
    claim_parser.add_argument("position_id", type=int, help="Position id")
    claim_parser.add_argument("reward_token", help="Reward token")
    claim_parser.set_defaults(func=cmd_claim_rewards)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        code = args.func(args)
    except KeyboardInterrupt:
        print("\nCancelled.")
        sys.exit(1)
    except FraxSwapError as e:
        print(f"Error: {type(e).__name__}: {e}")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
