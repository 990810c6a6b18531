from shopify_sanity_sync.content_store import Transaction
from shopify_sanity_sync.ids import DocumentKind
from shopify_sanity_sync.upsert import (TOMBSTONE_PATCH, DualWrite,
                                        delete_document, patch_payload,
                                        retire_document, tombstone_document,
                                        upsert_documents)

DOCUMENT = {
    "_id": "shopifyProduct-1",
    "_type": "product",
    "store": {"id": "1", "title": "Board"},
    "metafields": {},
}


def new_transaction():
    return Transaction(store=None)


def test_patch_payload_leaves_system_fields_alone():
    assert patch_payload(DOCUMENT) == {
        "store": {"id": "1", "title": "Board"},
        "metafields": {},
    }


def test_upsert_without_draft_writes_published_only():
    transaction = new_transaction()
    DualWrite().upsert(transaction, DOCUMENT, draft_exists=False)

    assert transaction.mutations == [
        {"createIfNotExists": DOCUMENT},
        {"patch": {"id": "shopifyProduct-1", "set": patch_payload(DOCUMENT)}},
    ]


def test_upsert_with_draft_patches_draft_but_never_creates_it():
    transaction = new_transaction()
    DualWrite().upsert(transaction, DOCUMENT, draft_exists=True)

    mutations = transaction.mutations
    assert mutations[-1] == {
        "patch": {"id": "drafts.shopifyProduct-1", "set": patch_payload(DOCUMENT)}
    }
    created = [
        m["createIfNotExists"]["_id"] for m in mutations if "createIfNotExists" in m
    ]
    assert created == ["shopifyProduct-1"]


def test_upsert_documents_looks_up_drafts_by_published_id():
    transaction = new_transaction()
    other = {**DOCUMENT, "_id": "shopifyProduct-2"}

    count = upsert_documents(
        transaction, [DOCUMENT, other], {"shopifyProduct-2": True}
    )

    assert count == 2
    patched = [m["patch"]["id"] for m in transaction.mutations if "patch" in m]
    assert patched == [
        "shopifyProduct-1",
        "shopifyProduct-2",
        "drafts.shopifyProduct-2",
    ]


def test_delete_document_removes_both_tracks():
    transaction = new_transaction()
    delete_document(transaction, "drafts.shopifyCollection-4")

    assert transaction.mutations == [
        {"delete": {"id": "shopifyCollection-4"}},
        {"delete": {"id": "drafts.shopifyCollection-4"}},
    ]


def test_tombstone_document_flags_instead_of_deleting():
    transaction = new_transaction()
    tombstone_document(transaction, "shopifyProductVariant-2", draft_exists=True)

    assert transaction.mutations == [
        {"patch": {"id": "shopifyProductVariant-2", "set": TOMBSTONE_PATCH}},
        {"patch": {"id": "drafts.shopifyProductVariant-2", "set": TOMBSTONE_PATCH}},
    ]


def test_retire_document_dispatches_on_kind():
    transaction = new_transaction()
    retire_document(transaction, DocumentKind.PRODUCT, "shopifyProduct-1")
    retire_document(transaction, "productVariant", "shopifyProductVariant-2")

    assert [next(iter(m)) for m in transaction.mutations] == [
        "delete",
        "delete",
        "patch",
    ]
