"""
Tests for TransactionBatch and the linear MatchReceipt.
"""
import copy
import pickle

import pytest

from yume.core.errors import InvalidInput, LinearResourceError
from yume.execution.batch import (
    GasCoinArg,
    InputArg,
    ResultArg,
    TransactionBatch,
    is_address,
)

PKG = "0x" + "ab" * 32
OBJ = "0x" + "cd" * 32


def _match(batch):
    [out] = batch.move_call(f"{PKG}::market::match_orders", [batch.object(OBJ)], returns=1)
    return batch.receipt(out)


class TestInputs:
    def test_objects_are_deduplicated(self):
        batch = TransactionBatch()
        a = batch.object(OBJ)
        b = batch.object(OBJ.upper().replace("0X", "0x"))
        assert a == b
        assert len(batch.inputs) == 1

    def test_pure_range_checks(self):
        batch = TransactionBatch()
        with pytest.raises(InvalidInput):
            batch.pure(-1)
        with pytest.raises(InvalidInput):
            batch.pure(2**64)
        with pytest.raises(InvalidInput):
            batch.pure(256, "u8")
        with pytest.raises(InvalidInput):
            batch.pure(True, "u64")
        with pytest.raises(InvalidInput):
            batch.pure("not-an-id", "id")

    def test_pure_u64_serialised_as_string(self):
        batch = TransactionBatch()
        batch.move_call(f"{PKG}::m::f", [batch.pure(2**63)])
        assert batch.to_dict()["inputs"][0]["value"] == str(2**63)

    def test_is_address(self):
        assert is_address("0x6")
        assert not is_address("6")
        assert not is_address("0x" + "0" * 65)


class TestCommands:
    def test_split_returns_one_handle_per_amount(self):
        batch = TransactionBatch()
        coins = batch.split_coins(batch.gas, [1, 2, 3])
        assert coins == [ResultArg(0, 0), ResultArg(0, 1), ResultArg(0, 2)]
        assert isinstance(batch.gas, GasCoinArg)

    def test_move_call_target_format(self):
        batch = TransactionBatch()
        with pytest.raises(InvalidInput):
            batch.move_call("market::settle")
        with pytest.raises(InvalidInput):
            batch.move_call(f"{PKG}::market::settle", type_arguments=[""])

    def test_unknown_argument_rejected(self):
        batch = TransactionBatch()
        with pytest.raises(InvalidInput):
            batch.move_call(f"{PKG}::m::f", [InputArg(3)])
        with pytest.raises(InvalidInput):
            batch.move_call(f"{PKG}::m::f", [ResultArg(5)])

    def test_empty_batch_cannot_seal(self):
        with pytest.raises(InvalidInput):
            TransactionBatch().seal()

    def test_sealed_batch_is_frozen(self):
        batch = TransactionBatch()
        batch.move_call(f"{PKG}::m::f")
        batch.seal()
        assert batch.sealed
        assert batch.seal() is batch
        with pytest.raises(InvalidInput):
            batch.pure(1)

    def test_functions(self):
        batch = TransactionBatch()
        [coin] = batch.split_coins(batch.gas, [5])
        batch.move_call(f"{PKG}::pool::deposit", [batch.object(OBJ), coin])
        assert batch.functions() == ["SplitCoins", "pool::deposit"]
        assert len(batch) == 2


class TestMatchReceipt:
    def test_unconsumed_receipt_blocks_seal(self):
        batch = TransactionBatch()
        _match(batch)
        assert batch.open_receipts == 1
        with pytest.raises(LinearResourceError):
            batch.seal()

    def test_consume_then_seal(self):
        batch = TransactionBatch()
        receipt = _match(batch)
        batch.move_call(f"{PKG}::market::settle", [receipt.consume(batch)])
        assert receipt.consumed
        assert batch.open_receipts == 0
        settle = batch.seal().to_dict()["commands"][1]["MoveCall"]
        assert settle["arguments"][0] == {"NestedResult": [0, 0]}

    def test_double_consume(self):
        batch = TransactionBatch()
        receipt = _match(batch)
        receipt.consume(batch)
        with pytest.raises(LinearResourceError):
            receipt.consume(batch)

    def test_consume_in_other_batch(self):
        batch = TransactionBatch()
        receipt = _match(batch)
        with pytest.raises(LinearResourceError):
            receipt.consume(TransactionBatch())

    def test_receipt_is_not_a_plain_argument(self):
        batch = TransactionBatch()
        receipt = _match(batch)
        with pytest.raises(LinearResourceError):
            batch.move_call(f"{PKG}::market::settle", [receipt])

    def test_cannot_copy_or_pickle(self):
        batch = TransactionBatch()
        receipt = _match(batch)
        with pytest.raises(LinearResourceError):
            copy.copy(receipt)
        with pytest.raises(LinearResourceError):
            copy.deepcopy(receipt)
        with pytest.raises(LinearResourceError):
            pickle.dumps(receipt)
