import os
from typing import List, Optional, Tuple
from urllib.parse import urljoin
from uuid import uuid4

from flask import current_app, request
from werkzeug.utils import secure_filename

UPLOADS_URL_PATH = "public/uploads/"


def allowed_image_type(mimetype: Optional[str]) -> Optional[str]:
    return current_app.config["PRODUCT_ALLOWED_TYPES"].get(str(mimetype or "").lower())


def save_product_image(image_file) -> Tuple[Optional[str], Optional[str]]:
    if not image_file or not getattr(image_file, "filename", ""):
        return None, "No Image File Uploaded"

    extension = allowed_image_type(image_file.mimetype)
    if not extension:
        return None, "Invalid Image Type"

    original_filename = secure_filename(image_file.filename).replace(" ", "-")
    stem = os.path.splitext(original_filename)[0] or "image"
    unique_filename = f"{stem}-{uuid4().hex}.{extension}"

    upload_folder = current_app.config["PRODUCT_UPLOAD_FOLDER"]
    os.makedirs(upload_folder, exist_ok=True)
    try:
        image_file.save(os.path.join(upload_folder, unique_filename))
    except OSError as exc:
        current_app.logger.error("Unable to store upload %s: %s", unique_filename, exc)
        return None, "We could not store the uploaded image. Please try again."

    return unique_filename, None


def save_product_images(image_files) -> Tuple[List[str], Optional[str]]:
    saved_filenames: List[str] = []
    for image_file in image_files or []:
        if not image_file or not getattr(image_file, "filename", ""):
            continue
        new_filename, image_error = save_product_image(image_file)
        if image_error:
            remove_product_images(saved_filenames)
            return [], image_error
        saved_filenames.append(new_filename)
    return saved_filenames, None


def remove_product_images(filenames) -> None:
    upload_folder = current_app.config["PRODUCT_UPLOAD_FOLDER"]
    for filename in filenames or []:
        try:
            os.remove(os.path.join(upload_folder, str(filename)))
        except OSError:
            continue


def build_upload_url(filename: Optional[str]) -> str:
    if not filename:
        return ""
    return urljoin(request.host_url, f"{UPLOADS_URL_PATH}{filename}")
