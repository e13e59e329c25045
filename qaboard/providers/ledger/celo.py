"""
Celo 네트워크 Ledger Client (web3.py)

- 사용자 액션: 지갑이 서명한 raw 트랜잭션을 중계하거나, 이미 브로드캐스트된
  트랜잭션 해시를 받아 컨펌까지 대기한다. 서버는 사용자 키를 다루지 않는다.
- 트레저리 지원금: 서버가 TREASURY_PRIVATE_KEY로 직접 서명해 전송한다.
"""

import logging
from typing import Optional

import requests
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import (
    ContractLogicError,
    TimeExhausted,
    TransactionNotFound,
    Web3RPCError,
)
from web3.logs import DISCARD

from qaboard.config import Settings
from qaboard.core.exceptions import (
    ConfigurationError,
    LedgerRejectedError,
    LedgerTimeoutError,
    LedgerUnavailableError,
)
from qaboard.providers.ledger.abi import EVENT_NAMES, QA_CONTRACT_ABI
from qaboard.providers.ledger.base import LedgerClient
from qaboard.schemas.actions import (
    ActionKind,
    ContractCall,
    LedgerEvent,
    OnChainRecord,
    Receipt,
)

logger = logging.getLogger(__name__)

NATIVE_TRANSFER_GAS = 21000


class CeloLedgerClient(LedgerClient):
    def __init__(self, settings: Settings, w3: Optional[Web3] = None):
        self.settings = settings
        self.w3 = w3 or Web3(
            Web3.HTTPProvider(
                settings.CELO_RPC_URL,
                request_kwargs={"timeout": settings.LEDGER_REQUEST_TIMEOUT_SECONDS},
            )
        )
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(settings.CONTRACT_ADDRESS),
            abi=QA_CONTRACT_ABI,
        )
        self._treasury = None

    # ------------------------------------------------------------------
    # Mutating calls
    # ------------------------------------------------------------------

    def submit(self, call: ContractCall) -> Receipt:
        if call.signed_transaction:
            tx_hash = self._broadcast(call.signed_transaction)
        elif call.transaction_hash:
            tx_hash = call.transaction_hash
        else:
            raise LedgerRejectedError(
                "Nothing to submit: no signed transaction or hash",
                details={"function": call.function},
            )

        logger.info(f"Awaiting {call.function}({', '.join(call.args)}) tx={tx_hash}")
        return self._await_receipt(tx_hash)

    def transfer(self, to_address: str, amount_wei: int) -> Receipt:
        account = self._treasury_account()
        try:
            tx = {
                "to": Web3.to_checksum_address(to_address),
                "value": amount_wei,
                "nonce": self.w3.eth.get_transaction_count(account.address, "pending"),
                "gas": NATIVE_TRANSFER_GAS,
                "gasPrice": self.w3.eth.gas_price,
                "chainId": self.settings.CHAIN_ID,
            }
        except requests.exceptions.RequestException as e:
            raise LedgerUnavailableError(details={"reason": str(e)})

        signed = account.sign_transaction(tx)
        tx_hash = self._broadcast(signed.raw_transaction)
        logger.info(f"Treasury transfer {amount_wei} wei -> {to_address} tx={tx_hash}")
        try:
            return self._await_receipt(tx_hash)
        except (LedgerRejectedError, LedgerTimeoutError):
            raise
        except Exception as e:
            # 브로드캐스트 이후: 자금 이동 여부를 알 수 없으므로 미확인으로 취급
            logger.warning(f"Treasury transfer tx={tx_hash} state unknown: {e!r}")
            raise LedgerTimeoutError(
                details={"transaction_hash": tx_hash, "confirmed": False}
            ) from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_receipt(self, transaction_hash: str) -> Optional[Receipt]:
        try:
            raw_receipt = self.w3.eth.get_transaction_receipt(transaction_hash)
        except TransactionNotFound:
            return None
        except requests.exceptions.RequestException as e:
            raise LedgerUnavailableError(details={"reason": str(e)})
        return self._to_receipt(raw_receipt)

    def get_balance(self, address: str) -> int:
        try:
            return int(self.w3.eth.get_balance(Web3.to_checksum_address(address)))
        except requests.exceptions.RequestException as e:
            raise LedgerUnavailableError(details={"reason": str(e)})

    def get_user_points(self, address: str) -> int:
        try:
            return int(
                self.contract.functions.getUserPoints(
                    Web3.to_checksum_address(address)
                ).call()
            )
        except requests.exceptions.RequestException as e:
            raise LedgerUnavailableError(details={"reason": str(e)})

    def get_event(self, kind: ActionKind, identifier: str) -> Optional[OnChainRecord]:
        try:
            if kind == ActionKind.ASK_QUESTION:
                author, category, timestamp, exists = (
                    self.contract.functions.getQuestion(identifier).call()
                )
                if not exists:
                    return None
                return OnChainRecord(
                    identifier=identifier,
                    kind=kind,
                    author=author,
                    category=category,
                    timestamp=timestamp,
                )

            author, question_id, timestamp, is_best, exists = (
                self.contract.functions.getAnswer(identifier).call()
            )
        except ContractLogicError:
            return None
        except requests.exceptions.RequestException as e:
            raise LedgerUnavailableError(details={"reason": str(e)})

        if not exists:
            return None
        if kind == ActionKind.SELECT_BEST_ANSWER and not is_best:
            return None
        return OnChainRecord(
            identifier=identifier,
            kind=kind,
            author=author,
            question_id=question_id,
            timestamp=timestamp,
            is_best_answer=is_best,
        )

    @property
    def treasury_address(self) -> str:
        return self._treasury_account().address

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _treasury_account(self):
        if self._treasury is None:
            if not self.settings.TREASURY_PRIVATE_KEY:
                raise ConfigurationError("Treasury private key not configured")
            self._treasury = self.w3.eth.account.from_key(
                self.settings.TREASURY_PRIVATE_KEY
            )
        return self._treasury

    def _broadcast(self, raw_transaction) -> str:
        """브로드캐스트 실패는 자금 이동 없음 → 재시도 안전"""
        try:
            tx_hash = self.w3.eth.send_raw_transaction(HexBytes(raw_transaction))
        except ContractLogicError as e:
            raise LedgerRejectedError(f"Transaction reverted: {e}", details={"confirmed": False})
        except (Web3RPCError, ValueError) as e:
            # nonce too low, underpriced, insufficient funds for gas ...
            raise LedgerRejectedError(f"Transaction rejected: {e}", details={"confirmed": False})
        except requests.exceptions.RequestException as e:
            raise LedgerUnavailableError(details={"reason": str(e), "confirmed": False})
        return Web3.to_hex(tx_hash)

    def _await_receipt(self, tx_hash: str) -> Receipt:
        try:
            raw_receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.settings.LEDGER_CONFIRMATION_TIMEOUT_SECONDS,
                poll_latency=self.settings.LEDGER_POLL_LATENCY_SECONDS,
            )
        except (TimeExhausted, Web3RPCError, requests.exceptions.RequestException) as e:
            # 브로드캐스트 이후의 실패는 최종 상태를 알 수 없음
            logger.warning(f"Transaction {tx_hash} unconfirmed: {e}")
            raise LedgerTimeoutError(
                details={"transaction_hash": tx_hash, "confirmed": False}
            )
        return self._to_receipt(raw_receipt)

    def _to_receipt(self, raw_receipt) -> Receipt:
        tx_hash = Web3.to_hex(raw_receipt["transactionHash"])
        if raw_receipt["status"] != 1:
            raise LedgerRejectedError(
                "Transaction reverted",
                details={
                    "transaction_hash": tx_hash,
                    "block_number": raw_receipt.get("blockNumber"),
                    "confirmed": False,
                },
            )
        return Receipt(
            transaction_hash=tx_hash,
            block_number=raw_receipt.get("blockNumber"),
            events=self._decode_events(raw_receipt),
        )

    def _decode_events(self, raw_receipt) -> list[LedgerEvent]:
        # 같은 시그니처의 다른 컨트랙트 로그는 제외
        contract_logs = {
            "logs": [
                log
                for log in raw_receipt.get("logs", [])
                if str(log.get("address", "")).lower() == self.contract.address.lower()
            ]
        }
        events = []
        for name in EVENT_NAMES:
            decoded = getattr(self.contract.events, name)().process_receipt(
                contract_logs, errors=DISCARD
            )
            for event in decoded:
                events.append(LedgerEvent(name=event["event"], args=dict(event["args"])))
        return events
