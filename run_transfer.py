"""
Command-line demo of one wallet transfer.

Seeds a common payer and a merchant payee, moves money between them and
prints the presented transfer and both users.

Usage:
    python run_transfer.py [--amount N] [--payer-balance N] [--db PATH]
                           [--http-authorizer] [--http-notifier]
"""

import argparse
import sys
from typing import Any

import orjson
from pydantic import ValidationError
from structlog import get_logger

from p2p_transfer.application.dto import CreateUserInput, TransferInput
from p2p_transfer.application.interfaces import (
    AccountRepository,
    Authorizer,
    Notifier,
    TransferRepository,
)
from p2p_transfer.application.use_cases import (
    CreateTransferUseCase,
    CreateUserUseCase,
    FindUserByIdUseCase,
    build_transfer_engine,
)
from p2p_transfer.config import AppConfig, get_config
from p2p_transfer.domain.exceptions import TransferDomainError
from p2p_transfer.infrastructure.database import (
    SqlAccountRepository,
    SqlTransferRepository,
    create_database,
)
from p2p_transfer.infrastructure.http import HttpAuthorizer, HttpNotifier
from p2p_transfer.infrastructure.identity import UuidGenerator
from p2p_transfer.infrastructure.local import LoggingNotifier, StaticAuthorizer
from p2p_transfer.infrastructure.logger import setup_logging
from p2p_transfer.infrastructure.memory import (
    InMemoryAccountRepository,
    InMemoryTransferRepository,
)
from p2p_transfer.infrastructure.presenters import (
    JsonTransferPresenter,
    JsonUserPresenter,
)


def setup_arg_parser(config: AppConfig) -> argparse.ArgumentParser:
    """Setup command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Run one P2P wallet transfer between two seeded users"
    )
    parser.add_argument(
        "--amount",
        type=int,
        default=1000,
        help="Amount to transfer, in minor units",
    )
    parser.add_argument(
        "--payer-balance",
        type=int,
        default=5000,
        help="Opening balance of the payer, in minor units",
    )
    parser.add_argument(
        "--currency",
        default=config.transfer.default_currency.value,
        help="Currency of the wallets and the transfer",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (cleared on start); in-memory store if omitted",
    )
    parser.add_argument(
        "--http-authorizer",
        action="store_true",
        help="Ask the configured authorization service instead of approving",
    )
    parser.add_argument(
        "--http-notifier",
        action="store_true",
        help="Send the completion event to the configured notification service",
    )
    return parser


def build_repositories(
    config: AppConfig, db_path: str | None
) -> tuple[AccountRepository, TransferRepository]:
    if db_path is None:
        return InMemoryAccountRepository(), InMemoryTransferRepository()

    database = create_database(db_path, echo=config.database.echo)
    database.clear_all()
    return SqlAccountRepository(database), SqlTransferRepository(database)


def build_adapters(
    config: AppConfig, args: argparse.Namespace
) -> tuple[Authorizer, Notifier]:
    authorizer = (
        HttpAuthorizer.from_config(config.authorizer)
        if args.http_authorizer
        else StaticAuthorizer(approve=True)
    )
    notifier = (
        HttpNotifier.from_config(config.notifier)
        if args.http_notifier
        else LoggingNotifier()
    )
    return authorizer, notifier


def seed_users(
    create_user: CreateUserUseCase, payer_balance: int, currency: str
) -> tuple[str, str]:
    payer = create_user.execute(
        CreateUserInput(
            full_name="Ana Souza",
            email="ana.souza@mail.com",
            password="secret",
            document_type="CPF",
            document_number="529.982.247-25",
            type="COMMON",
            balance=payer_balance,
            currency=currency,
        )
    )
    payee = create_user.execute(
        CreateUserInput(
            full_name="Loja Central",
            email="loja.central@mail.com",
            password="secret",
            document_type="CNPJ",
            document_number="11.222.333/0001-81",
            type="MERCHANT",
            balance=0,
            currency=currency,
        )
    )
    return payer.id, payee.id


def print_json(title: str, payload: dict[str, Any]) -> None:
    print(f"\n{title}:")
    print(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8"))


def main() -> int:
    """Seed users, run the transfer and print the outcome."""
    config = get_config()
    setup_logging(config.logger_adapter)
    logger = get_logger("run_transfer.py")

    parser = setup_arg_parser(config)
    args = parser.parse_args()

    accounts, transfers = build_repositories(config, args.db)
    authorizer, notifier = build_adapters(config, args)
    ids = UuidGenerator()

    engine = build_transfer_engine(
        accounts, transfers, authorizer, notifier, config.transfer, ids
    )
    create_user = CreateUserUseCase(
        accounts, JsonUserPresenter(), ids, default_currency=args.currency
    )
    create_transfer = CreateTransferUseCase(
        engine, JsonTransferPresenter(), config.transfer.default_currency
    )
    find_user = FindUserByIdUseCase(accounts, JsonUserPresenter())

    try:
        payer_id, payee_id = seed_users(
            create_user, args.payer_balance, args.currency
        )
        logger.info("Users seeded", payer_id=payer_id, payee_id=payee_id)

        output = create_transfer.execute(
            TransferInput(
                payer_id=payer_id,
                payee_id=payee_id,
                value=args.amount,
                currency=args.currency,
            )
        )
    except TransferDomainError as e:
        logger.error(f"Transfer failed: {type(e).__name__}: {e}")
        return 1
    except ValidationError as e:
        logger.error(f"Invalid request: {e}")
        return 1
    except Exception:
        logger.exception("Unexpected failure")
        return 2

    print_json("Transfer", output.model_dump())
    print_json("Payer", find_user.execute(payer_id).model_dump())
    print_json("Payee", find_user.execute(payee_id).model_dump())
    return 0


if __name__ == "__main__":
    sys.exit(main())
