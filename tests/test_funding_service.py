import threading
from unittest.mock import PropertyMock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from conftest import TX_FUNDING, make_receipt
from qaboard.core.exceptions import (
    AlreadyFundedError,
    ConfigurationError,
    InsufficientTreasuryError,
    InvalidAddressError,
    LedgerRejectedError,
    LedgerTimeoutError,
    LedgerUnavailableError,
    RecordWriteFailedError,
    TransferFailedError,
)
from qaboard.database.connection import enable_sqlite_savepoints
from qaboard.models.base import Base
from qaboard.models.funding import FundingStatus
from qaboard.repositories.funding_repository import FundingRepository
from qaboard.services.funding_service import FundingService

NEW_WALLET = "0x" + "4d" * 20
FUNDING_WEI = 120000000000000000  # 0.12 CELO
ONE_CELO = 10**18


@pytest.fixture
def funding_service(db_session, mock_ledger, test_settings):
    mock_ledger.get_balance.return_value = ONE_CELO
    mock_ledger.transfer.return_value = make_receipt(TX_FUNDING)
    return FundingService(db_session, mock_ledger, test_settings)


class TestRequestFunding:
    """지원금 지급 테스트"""

    def test_first_request_transfers_and_records(self, funding_service, mock_ledger, db_session):
        """첫 요청은 0.12 CELO를 전송하고 지갑을 CONFIRMED로 기록"""
        # When
        result = funding_service.request_funding(NEW_WALLET, ip_address="10.0.0.1")

        # Then
        assert result.success is True
        assert result.transaction_hash == TX_FUNDING
        assert result.amount == "0.12 CELO"
        assert result.explorer_url == f"https://celoscan.io/tx/{TX_FUNDING}"
        mock_ledger.transfer.assert_called_once_with(NEW_WALLET, FUNDING_WEI)

        record = FundingRepository(db_session).get(NEW_WALLET)
        assert record.status == FundingStatus.CONFIRMED.value
        assert record.transaction_hash == TX_FUNDING
        assert float(record.amount) == pytest.approx(0.12)
        assert record.ip_address == "10.0.0.1"

    def test_second_request_is_rejected_without_transfer(self, funding_service, mock_ledger):
        """같은 지갑의 두 번째 요청은 AlreadyFunded, 전송은 한 번만"""
        funding_service.request_funding(NEW_WALLET)

        with pytest.raises(AlreadyFundedError) as exc_info:
            funding_service.request_funding(NEW_WALLET)

        assert exc_info.value.status_code == 409
        assert mock_ledger.transfer.call_count == 1

    def test_address_case_variants_are_one_wallet(self, funding_service, mock_ledger, db_session):
        """대소문자만 다른 주소는 같은 지갑으로 취급"""
        funding_service.request_funding(NEW_WALLET.upper().replace("0X", "0x"))

        with pytest.raises(AlreadyFundedError):
            funding_service.request_funding(NEW_WALLET)

        assert mock_ledger.transfer.call_count == 1
        assert FundingRepository(db_session).get(NEW_WALLET) is not None

    @pytest.mark.parametrize("spelling", [NEW_WALLET[2:], " " + NEW_WALLET[2:].upper() + " "])
    def test_unprefixed_address_is_same_wallet(self, funding_service, mock_ledger, db_session, spelling):
        """0x 접두어 없는 주소도 같은 지갑, 두 번째 지급 없음"""
        funding_service.request_funding(NEW_WALLET)

        with pytest.raises(AlreadyFundedError):
            funding_service.request_funding(spelling)

        assert mock_ledger.transfer.call_count == 1
        mock_ledger.transfer.assert_called_once_with(NEW_WALLET, FUNDING_WEI)

    def test_unprefixed_first_request_is_stored_canonically(self, funding_service, mock_ledger, db_session):
        result = funding_service.request_funding(NEW_WALLET[2:])

        assert result.transaction_hash == TX_FUNDING
        mock_ledger.transfer.assert_called_once_with(NEW_WALLET, FUNDING_WEI)
        assert FundingRepository(db_session).get(NEW_WALLET) is not None
        with pytest.raises(AlreadyFundedError):
            funding_service.request_funding(NEW_WALLET)

    def test_losing_concurrent_claim_never_transfers(self, funding_service, mock_ledger, db_session):
        """다른 요청이 먼저 선점한 지갑은 전송 전에 거부"""
        # Given: 동시 요청의 승자가 이미 행을 선점
        assert FundingRepository(db_session).claim(NEW_WALLET, None) is True

        # When / Then
        with pytest.raises(AlreadyFundedError):
            funding_service.request_funding(NEW_WALLET)
        mock_ledger.get_balance.assert_not_called()
        mock_ledger.transfer.assert_not_called()

    @pytest.mark.parametrize("address", [None, "", "not-an-address", "0x1234", "0x" + "g" * 40])
    def test_invalid_address(self, funding_service, mock_ledger, address):
        """잘못된 주소는 네트워크 호출 없이 거부"""
        with pytest.raises(InvalidAddressError) as exc_info:
            funding_service.request_funding(address)

        assert exc_info.value.status_code == 400
        mock_ledger.transfer.assert_not_called()

    def test_insufficient_treasury_releases_claim(self, funding_service, mock_ledger, db_session):
        """트레저리 잔액 부족 시 전송 없이 실패하고 선점 해제"""
        # Given
        mock_ledger.get_balance.return_value = FUNDING_WEI - 1

        # When
        with pytest.raises(InsufficientTreasuryError) as exc_info:
            funding_service.request_funding(NEW_WALLET)

        # Then
        assert exc_info.value.status_code == 503
        assert "Need: 0.12 CELO" in exc_info.value.message
        mock_ledger.transfer.assert_not_called()
        assert FundingRepository(db_session).get(NEW_WALLET) is None

        # 잔액 충전 후 재시도 가능
        mock_ledger.get_balance.return_value = ONE_CELO
        result = funding_service.request_funding(NEW_WALLET)
        assert result.transaction_hash == TX_FUNDING

    def test_missing_treasury_key_releases_claim(self, db_session, mock_ledger, test_settings):
        """트레저리 키 미설정 시 ConfigurationError, 선점 해제"""
        type(mock_ledger).treasury_address = PropertyMock(
            side_effect=ConfigurationError("Treasury private key not configured")
        )
        service = FundingService(db_session, mock_ledger, test_settings)

        with pytest.raises(ConfigurationError):
            service.request_funding(NEW_WALLET)

        assert FundingRepository(db_session).get(NEW_WALLET) is None

    @pytest.mark.parametrize(
        "ledger_error",
        [
            LedgerRejectedError("nonce too low", details={"confirmed": False}),
            LedgerUnavailableError(details={"reason": "connection refused"}),
        ],
    )
    def test_transfer_failure_releases_claim(self, funding_service, mock_ledger, db_session, ledger_error):
        """자금 이동 없는 전송 실패는 TransferFailed, 재시도 가능"""
        mock_ledger.transfer.side_effect = ledger_error

        with pytest.raises(TransferFailedError) as exc_info:
            funding_service.request_funding(NEW_WALLET)

        assert exc_info.value.status_code == 502
        assert exc_info.value.details["wallet_address"] == NEW_WALLET
        assert FundingRepository(db_session).get(NEW_WALLET) is None

    def test_unconfirmed_transfer_keeps_claim(self, funding_service, mock_ledger, db_session):
        """브로드캐스트 후 컨펌 미확인이면 선점 유지 (이중 지급 방지)"""
        # Given
        mock_ledger.transfer.side_effect = LedgerTimeoutError(
            details={"transaction_hash": TX_FUNDING, "confirmed": False}
        )

        # When
        with pytest.raises(LedgerTimeoutError):
            funding_service.request_funding(NEW_WALLET)

        # Then
        record = FundingRepository(db_session).get(NEW_WALLET)
        assert record.status == FundingStatus.SUBMITTED.value
        assert record.transaction_hash == TX_FUNDING

        with pytest.raises(AlreadyFundedError):
            funding_service.request_funding(NEW_WALLET)
        assert mock_ledger.transfer.call_count == 1

    def test_unexpected_transfer_error_keeps_claim(self, funding_service, mock_ledger, db_session):
        """분류되지 않은 전송 오류는 브로드캐스트 여부를 알 수 없으므로 선점 유지"""
        mock_ledger.transfer.side_effect = RuntimeError("node poll failed")

        with pytest.raises(RuntimeError):
            funding_service.request_funding(NEW_WALLET)

        assert FundingRepository(db_session).get(NEW_WALLET) is not None
        with pytest.raises(AlreadyFundedError):
            funding_service.request_funding(NEW_WALLET)
        assert mock_ledger.transfer.call_count == 1

    def test_record_write_failure_after_transfer(self, funding_service, mock_ledger):
        """전송 후 기록 실패는 RecordWriteFailed, 전송 재시도 없음"""
        with patch.object(
            funding_service.funding_repo, "finalize", side_effect=SQLAlchemyError("db down")
        ):
            with pytest.raises(RecordWriteFailedError) as exc_info:
                funding_service.request_funding(NEW_WALLET)

        assert exc_info.value.status_code == 500
        assert exc_info.value.details["transaction_hash"] == TX_FUNDING
        assert mock_ledger.transfer.call_count == 1

        # 선점 행은 남아 있어 재요청은 거부됨
        with pytest.raises(AlreadyFundedError):
            funding_service.request_funding(NEW_WALLET)
        assert mock_ledger.transfer.call_count == 1


class TestFundingStatus:
    def test_unfunded_wallet(self, funding_service):
        status = funding_service.get_funding_status(NEW_WALLET)

        assert status.funded is False
        assert status.transaction_hash is None

    def test_funded_wallet(self, funding_service):
        funding_service.request_funding(NEW_WALLET)

        status = funding_service.get_funding_status(NEW_WALLET.upper().replace("0X", "0x"))

        assert status.funded is True
        assert status.wallet_address == NEW_WALLET
        assert status.status == FundingStatus.CONFIRMED.value
        assert status.transaction_hash == TX_FUNDING


class TestConcurrentFunding:
    """별도 세션/스레드의 동시 요청"""

    @pytest.fixture
    def file_session_factory(self, tmp_path):
        file_engine = create_engine(
            f"sqlite:///{tmp_path / 'funding.db'}",
            connect_args={"check_same_thread": False, "timeout": 10},
        )
        enable_sqlite_savepoints(file_engine)
        Base.metadata.create_all(bind=file_engine)
        yield sessionmaker(autoflush=False, bind=file_engine, expire_on_commit=False)
        file_engine.dispose()

    def test_concurrent_requests_transfer_once(self, file_session_factory, mock_ledger, test_settings):
        """같은 지갑 동시 요청 2건 → 전송은 정확히 1회"""
        # Given
        mock_ledger.get_balance.return_value = ONE_CELO
        mock_ledger.transfer.return_value = make_receipt(TX_FUNDING)
        barrier = threading.Barrier(2)
        outcomes = []

        def request(wallet):
            session = file_session_factory()
            try:
                barrier.wait()
                FundingService(session, mock_ledger, test_settings).request_funding(wallet)
                outcomes.append("funded")
            except AlreadyFundedError:
                outcomes.append("rejected")
            finally:
                session.close()

        # When: 서로 다른 표기로 동시에 요청
        threads = [
            threading.Thread(target=request, args=(NEW_WALLET,)),
            threading.Thread(target=request, args=(NEW_WALLET[2:].upper(),)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        # Then
        assert sorted(outcomes) == ["funded", "rejected"]
        mock_ledger.transfer.assert_called_once_with(NEW_WALLET, FUNDING_WEI)

        session = file_session_factory()
        try:
            record = FundingRepository(session).get(NEW_WALLET)
            assert record.status == FundingStatus.CONFIRMED.value
        finally:
            session.close()
