from ledgerly.services.transaction_ids import (
    dps_transfer_tags,
    generate_transaction_id,
    generate_transfer_id,
    is_transfer,
    is_valid_transaction_id,
    transfer_id_of,
    transfer_tags,
)


def test_generated_transaction_ids_match_format():
    for _ in range(50):
        tid = generate_transaction_id()
        assert is_valid_transaction_id(tid), tid
        assert len(tid) == 8


def test_is_valid_transaction_id_rejects_malformed():
    assert not is_valid_transaction_id(None)
    assert not is_valid_transaction_id("")
    assert not is_valid_transaction_id("F123")
    assert not is_valid_transaction_id("G1234567")
    assert not is_valid_transaction_id("F12345678")


def test_transfer_tags_layout():
    tid = generate_transfer_id()
    tags = transfer_tags(tid, 7, "200")
    assert tags == ["transfer", tid, "7", "200"]
    assert is_transfer(tags)
    assert transfer_id_of(tags) == tid


def test_dps_transfer_tags_count_as_transfer():
    tags = dps_transfer_tags("abc")
    assert tags == ["dps_transfer_abc"]
    assert is_transfer(tags)
    assert transfer_id_of(tags) == "abc"


def test_plain_tags_are_not_transfers():
    assert not is_transfer(["groceries"])
    assert not is_transfer(None)
    assert transfer_id_of(["groceries"]) is None
