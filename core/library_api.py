# core/library_api.py
"""
Flask blueprint for the prompt library.
Each route triggers one semantic action on the PromptLibrary; reads come from
the synced mirror, writes go to the store and show up after the store echoes
them back through the subscription.
"""
import json
import logging
from flask import Blueprint, Response, jsonify, request

from core.errors import LibraryError, MalformedImportError, ValidationError
from core.library.views import find_placeholders, orphaned_prompts

logger = logging.getLogger(__name__)


def create_library_api(library):
    """Create and return the library API blueprint."""
    bp = Blueprint('library_api', __name__, url_prefix='/api/library')

    @bp.errorhandler(LibraryError)
    def handle_library_error(e):
        logger.warning(f"{request.method} {request.path} failed: {e.message}")
        return jsonify({'error': e.message, 'type': type(e).__name__}), e.status_code

    def _json_body():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    def _prompt_json(prompt):
        data = prompt.to_dict()
        data['placeholders'] = find_placeholders(prompt.prompt)
        return data

    # --- Prompts ---------------------------------------------------------

    @bp.route('/prompts', methods=['GET'])
    def list_prompts():
        """Filtered prompt list: ?q=search&category=A&category=B"""
        search = request.args.get('q', '')
        categories = [c for c in request.args.getlist('category') if c]
        prompts = library.prompts_view(search, categories)
        return jsonify({
            'prompts': [_prompt_json(p) for p in prompts],
            'count': len(prompts),
            'total': len(library.sync_state.prompts)
        })

    @bp.route('/prompts', methods=['POST'])
    def create_prompt():
        prompt_id = library.create_prompt(_json_body())
        return jsonify({'status': 'success', 'id': prompt_id}), 201

    @bp.route('/prompts/<prompt_id>', methods=['GET'])
    def get_prompt(prompt_id):
        prompt = library.get_prompt(prompt_id)
        if prompt is None:
            return jsonify({'error': f"Prompt '{prompt_id}' not found"}), 404
        return jsonify(_prompt_json(prompt))

    @bp.route('/prompts/<prompt_id>', methods=['PUT'])
    def edit_prompt(prompt_id):
        library.edit_prompt(prompt_id, _json_body())
        return jsonify({'status': 'success', 'message': 'Prompt updated'})

    @bp.route('/prompts/<prompt_id>', methods=['DELETE'])
    def delete_prompt(prompt_id):
        task = library.delete_prompt(prompt_id)
        return jsonify({'status': 'success', 'message': f"Prompt '{task}' deleted"})

    @bp.route('/prompts/<prompt_id>/copy', methods=['POST'])
    def copy_prompt(prompt_id):
        body = library.copy_prompt(prompt_id)
        return jsonify({'status': 'success', 'prompt': body})

    @bp.route('/prompts/<prompt_id>/history/<int:index>', methods=['GET'])
    def get_history_version(prompt_id, index):
        """Historical body for restore-to-editor. Read only."""
        body = library.restore_history(prompt_id, index)
        return jsonify({'index': index, 'prompt': body})

    # --- Categories ------------------------------------------------------

    @bp.route('/categories', methods=['GET'])
    def list_categories():
        state = library.sync_state
        categories = []
        for category in state.categories:
            data = category.to_dict()
            data['prompt_count'] = len(state.prompts_in_category(category.name))
            categories.append(data)
        orphaned = sorted({p.category for p in orphaned_prompts(state.prompts, state.category_names())})
        return jsonify({'categories': categories, 'orphaned': orphaned})

    @bp.route('/categories', methods=['POST'])
    def add_category():
        category_id = library.add_category(_json_body().get('name'))
        return jsonify({'status': 'success', 'id': category_id}), 201

    @bp.route('/categories/<category_id>', methods=['PUT'])
    def rename_category(category_id):
        updated = library.rename_category(category_id, _json_body().get('name'))
        return jsonify({'status': 'success', 'updated_prompts': updated})

    @bp.route('/categories/<category_id>', methods=['DELETE'])
    def delete_category(category_id):
        library.delete_category(category_id)
        return jsonify({'status': 'success'})

    # --- Export / import -------------------------------------------------

    @bp.route('/export', methods=['GET'])
    def export_all():
        filename, text = library.export_text()
        return Response(
            text,
            mimetype='application/json',
            headers={'Content-Disposition': f'attachment; filename="{filename}"'}
        )

    @bp.route('/import', methods=['POST'])
    def import_library():
        """Accepts a multipart 'file', a JSON body, or pasted JSON as raw text."""
        upload = request.files.get('file')
        if upload is not None:
            try:
                text = upload.read().decode('utf-8')
            except UnicodeDecodeError as e:
                raise MalformedImportError(f"File is not UTF-8 text: {e}")
            summary = library.import_text(text)
        elif request.is_json and request.get_json(silent=True) is not None:
            summary = library.import_data(request.get_json())
        else:
            summary = library.import_text(request.get_data(as_text=True))
        return jsonify({'status': 'success', **summary})

    # --- Status / events -------------------------------------------------

    @bp.route('/status', methods=['GET'])
    def status():
        return jsonify(library.status())

    @bp.route('/seed/retry', methods=['POST'])
    def retry_seed():
        seeded = library.retry_seed()
        return jsonify({'status': 'success', 'seeded': seeded, 'bootstrap': library.seeder.state.value})

    @bp.route('/events', methods=['GET'])
    def event_stream():
        """SSE endpoint for sync and notification events."""
        # Capture request args BEFORE entering generator (request context ends after return)
        replay = request.args.get('replay', 'false').lower() == 'true'

        def generate():
            for event in library.bus.subscribe(replay=replay):
                yield f"data: {json.dumps(event)}\n\n"

        return Response(
            generate(),
            mimetype='text/event-stream',
            headers={
                'Cache-Control': 'no-cache',
                'Connection': 'keep-alive',
                'X-Accel-Buffering': 'no'
            }
        )

    return bp
