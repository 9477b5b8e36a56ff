"""
Files Routes Blueprint

- /api/records/<entity>/<record_id>/files: list, upload and delete files of a record
- /api/files/<bucket>/<path>: download a stored file
"""

import io
import logging
import mimetypes

from flask import Blueprint, jsonify, request, send_file

from app.utils.helpers import error_response, get_extensions, get_service, json_body
from services.errors import StorageError
from services.files import FileService

logger = logging.getLogger(__name__)

files_bp = Blueprint('files_bp', __name__)


@files_bp.route('/api/records/<entity>/<record_id>/files', methods=['GET', 'POST', 'DELETE'])
def handle_record_files(entity, record_id):
    """Files attached to a lead, sales order, offer or work order"""
    try:
        service = get_service(FileService)
        if request.method == 'GET':
            files = service.list_files(entity, record_id)
            return jsonify({'success': True, 'files': files, 'count': len(files)})

        if request.method == 'POST':
            if 'file' not in request.files:
                raise StorageError("No file provided")
            upload = request.files['file']
            if not upload.filename:
                raise StorageError("No file selected")
            result = service.upload_file(entity, record_id, upload.filename, upload.stream, upload.mimetype)
            return jsonify({'success': True, **result}), 201

        removed = service.delete_files(entity, record_id, json_body().get('paths') or [])
        return jsonify({'success': True, 'removed': removed})
    except Exception as e:
        return error_response(e, f"Error handling files of {entity} {record_id}")


@files_bp.route('/api/records/<entity>/<record_id>/files/url', methods=['GET'])
def get_record_file_url(entity, record_id):
    """Public URL of one file of a record"""
    try:
        url = get_service(FileService).file_url(entity, record_id, request.args.get('path', ''))
        return jsonify({'success': True, 'url': url})
    except Exception as e:
        return error_response(e, f"Error building file URL for {entity} {record_id}")


@files_bp.route('/api/files/<bucket>/<path:path>', methods=['GET'])
def download_file(bucket, path):
    """Serve a stored file"""
    try:
        data = get_extensions()['storage'].download(bucket, path)
        mimetype = mimetypes.guess_type(path)[0] or 'application/octet-stream'
        return send_file(io.BytesIO(data), mimetype=mimetype, download_name=path.rsplit('/', 1)[-1])
    except Exception as e:
        return error_response(e, f"Error downloading {bucket}/{path}")
