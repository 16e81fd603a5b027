from __future__ import annotations

from fastapi import APIRouter, File, UploadFile, status

from ..schemas import UploadOut
from ..settings import get_settings
from ..uploads import delete_image, save_image

router = APIRouter(
    prefix="/api/v1/uploads",
    tags=["uploads"],
)


# PUBLIC_INTERFACE
@router.post(
    "/image",
    response_model=UploadOut,
    summary="Upload Image",
    description=(
        "Store a JPEG, PNG, GIF or WebP image (multipart field 'image'). "
        "The returned url can be saved as a task's image_url."
    ),
    responses={400: {"description": "Missing file, disallowed type or too large"}},
)
def upload_image(image: UploadFile = File(..., description="Image file")) -> UploadOut:
    settings = get_settings()
    data = image.file.read(settings.max_upload_bytes + 1)
    stored = save_image(
        settings.upload_dir,
        data,
        image.content_type,
        image.filename,
        settings.max_upload_bytes,
    )
    return UploadOut(message="Image uploaded successfully", file=stored)


# PUBLIC_INTERFACE
@router.delete(
    "/image/{filename}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Image",
    responses={
        204: {"description": "Image deleted"},
        404: {"description": "Image not found"},
    },
)
def remove_image(filename: str) -> None:
    delete_image(get_settings().upload_dir, filename)
    return None
