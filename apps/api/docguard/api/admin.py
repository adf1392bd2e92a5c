from typing import Any

from fastapi import APIRouter, Depends

from docguard.api.deps import get_record_store, verify_admin_key
from docguard.services.records import RecordStore


router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(verify_admin_key)])


@router.get("/users")
def list_users(store: RecordStore = Depends(get_record_store)) -> dict[str, Any]:
    users = store.list_users_with_document_counts()
    return {
        "users": [user.model_dump(mode="json") for user in users],
        "totalDocuments": sum(user.documentCount for user in users),
    }


@router.get("/documents")
def list_documents(store: RecordStore = Depends(get_record_store)) -> dict[str, Any]:
    documents = store.list_documents()
    return {
        "documents": [document.model_dump(mode="json") for document in documents],
        "total": len(documents),
    }
