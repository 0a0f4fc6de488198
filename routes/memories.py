"""
Route handlers for the memory browser.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from dependencies import Services, get_services

router = APIRouter()


@router.get("/memories")
async def list_memories(services: Services = Depends(get_services)):
    """List stored memories without their embeddings."""
    entries = services.memories.list_entries()
    return {
        "count": len(entries),
        "memories": [entry.model_dump(exclude={"embedding"}) for entry in entries],
    }


@router.delete("/memories/{memory_id}")
async def delete_memory(memory_id: str, services: Services = Depends(get_services)):
    if not services.memories.delete_one(memory_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Memory {memory_id} not found")
    return {"deleted": memory_id}


@router.delete("/memories")
async def clear_memories(services: Services = Depends(get_services)):
    return {"deleted": services.memories.delete_all()}
