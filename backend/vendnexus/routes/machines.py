# Overview: Flask API routes for machines; read-only.

from flask import Blueprint

from ..services import catalog_service

machines_bp = Blueprint("machines", __name__, url_prefix="/api/machines")


@machines_bp.get("")
def list_machines_route():
    return {"items": [m.to_dict() for m in catalog_service.list_machines()]}


@machines_bp.get("/<machine_id>")
def get_machine_route(machine_id: str):
    machine = catalog_service.get_machine(machine_id)
    if machine is None:
        return {"error": "Machine not found"}, 404

    data = machine.to_dict()
    data["products"] = [p.to_dict() for p in catalog_service.list_products(machine_id=machine_id)]
    return data
