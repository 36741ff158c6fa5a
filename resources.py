import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Tuple, Type

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import get_db, list_many, serialize, to_oid, utcnow
from schemas import ChuiraRecord, DhaanRecord, ExpenseRecord, SalaryRecord, SalesRecord

logger = logging.getLogger(__name__)


@dataclass
class Resource:
    """One record kind: its collection, schema and the wording of its replies."""

    path: str
    collection: str
    model: Type[BaseModel]
    required: Tuple[str, ...]
    required_message: str
    noun: str = "Record"
    created_verb: str = "created"
    failure_noun: str = "record"
    failure_create_verb: str = "create"
    unique: Optional[str] = None
    unique_label: Optional[str] = None
    # parseInt-style: "12.7" and 12.0 both become 12
    int_fields: Tuple[str, ...] = ()

    @property
    def update_required_message(self) -> str:
        if self.required_message.startswith("All fields"):
            return self.required_message
        return "ID, " + self.required_message[0].lower() + self.required_message[1:]

    @contextmanager
    def failures(self, message: str):
        try:
            yield
        except HTTPException:
            raise
        except DuplicateKeyError as exc:
            raise HTTPException(status_code=400, detail=f"{self.unique_label} already exists") from exc
        except Exception as exc:
            logger.exception("%s on %s", message, self.collection)
            raise HTTPException(status_code=500, detail=message) from exc

# ------------------------- Payload coercion -------------------------

def is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(part) for part in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else err.get("msg", "Invalid input")


def build_document(resource: Resource, payload: dict, required_message: str) -> dict:
    missing = [name for name in resource.required if is_blank(payload.get(name))]
    if missing:
        raise HTTPException(status_code=400, detail=required_message)

    data = {}
    for name in resource.model.model_fields:
        value = payload.get(name)
        if is_blank(value):
            continue
        if name in resource.int_fields:
            try:
                value = int(float(value))
            except (TypeError, ValueError, OverflowError):
                raise HTTPException(status_code=400, detail=f"Invalid value for {name}")
        data[name] = value

    try:
        record = resource.model(**data)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_message(exc))
    return record.model_dump()


def check_unique(db: Database, resource: Resource, doc: dict, exclude=None) -> None:
    if not resource.unique:
        return
    query = {resource.unique: doc[resource.unique]}
    if exclude is not None:
        query["_id"] = {"$ne": exclude}
    if db[resource.collection].find_one(query):
        raise HTTPException(status_code=400, detail=f"{resource.unique_label} already exists")

# ------------------------- Resources -------------------------

DHAAN = Resource(
    path="dhaan-records",
    collection="dhaanrecords",
    model=DhaanRecord,
    required=("quantity", "farmer", "location"),
    required_message="Quantity, farmer, and location are required",
)

CHUIRA = Resource(
    path="chuira-records",
    collection="chuirarecords",
    model=ChuiraRecord,
    required=("batchId", "produced", "bhuss", "operatorName", "status", "date"),
    required_message="All fields are required",
    noun="Chuira batch",
    created_verb="added",
    failure_noun="batch",
    failure_create_verb="add",
    unique="batchId",
    unique_label="Batch ID",
)

SALARY = Resource(
    path="employee-salary",
    collection="salaryrecords",
    model=SalaryRecord,
    required=("employeeName", "salaryAmount", "paidDate"),
    required_message="All fields are required",
    noun="Salary record",
    created_verb="added",
    failure_create_verb="add",
)

EXPENSE = Resource(
    path="extra-expenses",
    collection="expenserecords",
    model=ExpenseRecord,
    required=("date", "category", "amount"),
    required_message="Date, category, and amount are required",
    noun="Expense record",
)

SALES = Resource(
    path="sales",
    collection="salesrecords",
    model=SalesRecord,
    required=("orderId", "date", "quantity", "pricePerKg", "customerName"),
    required_message="Order ID, date, quantity, price per kg, and customer name are required",
    noun="Sales record",
    unique="orderId",
    unique_label="Order ID",
    int_fields=("orderId",),
)

RESOURCES = [DHAAN, CHUIRA, SALARY, EXPENSE, SALES]

# ------------------------- Routes -------------------------

def build_router(resource: Resource) -> APIRouter:
    router = APIRouter(prefix=f"/api/{resource.path}", tags=[resource.path])
    collection = resource.collection

    @router.get("")
    def list_records(db: Database = Depends(get_db)):
        with resource.failures("Failed to fetch records"):
            records = list_many(db, collection)
        return {"message": "Records fetched successfully", "records": [serialize(r) for r in records]}

    @router.post("", status_code=201)
    def create_record(payload: dict = Body(...), db: Database = Depends(get_db)):
        doc = build_document(resource, payload, resource.required_message)
        failure = f"Failed to {resource.failure_create_verb} {resource.failure_noun}"
        with resource.failures(failure):
            check_unique(db, resource, doc)
            now = utcnow()
            doc.update({"createdAt": now, "updatedAt": now})
            res = db[collection].insert_one(doc)
            saved = db[collection].find_one({"_id": res.inserted_id})
        logger.info("Created %s %s", collection, res.inserted_id)
        return {"message": f"{resource.noun} {resource.created_verb} successfully", "record": serialize(saved)}

    @router.put("")
    def update_record(payload: dict = Body(...), db: Database = Depends(get_db)):
        if is_blank(payload.get("_id")):
            raise HTTPException(status_code=400, detail=resource.update_required_message)
        doc = build_document(resource, payload, resource.update_required_message)
        oid = to_oid(payload["_id"])
        if oid is None:
            raise HTTPException(status_code=404, detail="Record not found")
        with resource.failures(f"Failed to update {resource.failure_noun}"):
            existing = db[collection].find_one({"_id": oid})
            if not existing:
                raise HTTPException(status_code=404, detail="Record not found")
            check_unique(db, resource, doc, exclude=oid)
            doc["createdAt"] = existing.get("createdAt", utcnow())
            doc["updatedAt"] = utcnow()
            updated = db[collection].find_one_and_replace(
                {"_id": oid}, doc, return_document=ReturnDocument.AFTER
            )
            if not updated:
                raise HTTPException(status_code=404, detail="Record not found")
        logger.info("Updated %s %s", collection, oid)
        return {"message": f"{resource.noun} updated successfully", "record": serialize(updated)}

    @router.delete("")
    def delete_record(id: Optional[str] = Query(None), db: Database = Depends(get_db)):
        if is_blank(id):
            raise HTTPException(status_code=400, detail="Record ID is required")
        oid = to_oid(id)
        if oid is None:
            raise HTTPException(status_code=404, detail="Record not found")
        with resource.failures(f"Failed to delete {resource.failure_noun}"):
            deleted = db[collection].find_one_and_delete({"_id": oid})
        if not deleted:
            raise HTTPException(status_code=404, detail="Record not found")
        logger.info("Deleted %s %s", collection, oid)
        return {"message": f"{resource.noun} deleted successfully", "record": serialize(deleted)}

    return router
