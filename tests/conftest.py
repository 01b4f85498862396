import pytest

from manifests.database import create_ledger_engine, create_session_factory, init_db
from manifests.ledger import ManifestLedger
from manifests.services.accounting import AccountingEngine
from manifests.services.lifecycle import ManifestLifecycleEngine
from manifests.services.queries import ManifestQueryEngine
from manifests.services.replication import ReplicationEngine
from shared.accounts import account_from_seed

ALICE_SEED = "//Alice"
BOB_SEED = "//Bob"
CHARLIE_SEED = "//Charlie"
DAVE_SEED = "//Dave"

ALICE = account_from_seed(ALICE_SEED)
BOB = account_from_seed(BOB_SEED)
CHARLIE = account_from_seed(CHARLIE_SEED)
DAVE = account_from_seed(DAVE_SEED)


@pytest.fixture
def ledger_engine():
    engine = create_ledger_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def ledger(ledger_engine):
    return ManifestLedger(create_session_factory(ledger_engine), submission_timeout=1.0)


@pytest.fixture
def lifecycle(ledger):
    return ManifestLifecycleEngine(ledger)


@pytest.fixture
def replication(ledger):
    return ReplicationEngine(ledger)


@pytest.fixture
def accounting(ledger):
    return AccountingEngine(ledger)


@pytest.fixture
def queries(ledger):
    return ManifestQueryEngine(ledger)
