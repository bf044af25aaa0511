# MIT License

# Copyright (c) 2023 Voxed Team

# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:

# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.

# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.


import azure.functions as func
import logging

import os
import shutil
import tempfile

import xed_decode
from xed_errors import XedError


app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)


@app.route(route="XedDecode", methods=["POST"])
def XedDecode(req: func.HttpRequest) -> func.HttpResponse:
    logging.info('Python HTTP trigger function processed a request.')

    # If xed file not passed correctly, returns 400
    if "file" not in req.files:
        logging.info("File not received")
        return func.HttpResponse(
            "Xed file not passed in request body as value of \"file\" key",
            status_code=400
        )

    try:
        zip_data = decode_upload(req.files["file"])
    except XedError as e:
        logging.warning("Error decoding file: %s", e)
        return func.HttpResponse(
            "Error decoding file",
            status_code=400
        )
    except OSError as e:
        logging.exception(e)
        return func.HttpResponse(
            "Unexpected server error",
            status_code=500
        )

    # Returns the bytestream
    return func.HttpResponse(
        zip_data,
        status_code=200,
        mimetype="application/zip",
        headers={"Content-Disposition": "attachment;filename=images.zip"}
    )


def decode_upload(file):
    """Decode an uploaded xed file (anything with save(path)) and return the snapshots zipped."""
    work_path = tempfile.mkdtemp(prefix="xed-")
    xed_path = os.path.join(work_path, "upload.xed")
    image_folder_path = os.path.join(work_path, "images")
    zip_path = os.path.join(work_path, "snapshots")

    try:
        os.mkdir(image_folder_path)

        # Saves the xed file temporarily
        file.save(xed_path)

        # Extract the images from the xed file
        written = xed_decode.xed_decode(xed_path, image_folder_path, verbose=False)
        logging.info("%s decoded, %d images", xed_path, len(written))

        # Generates a zip with the extracted images
        archive = shutil.make_archive(zip_path, 'zip', image_folder_path)
        with open(archive, 'rb') as zip_file:
            return zip_file.read()
    finally:
        # Delete temporary files
        remove_files(work_path)


def remove_files(work_path):
    if work_path is not None and os.path.isdir(work_path):
        shutil.rmtree(work_path)
        logging.info(f"{work_path} deleted")
