"""Django views for the inlinks app.

The single endpoint validates its form, hands the work to
:mod:`inlinks.services` and answers with JSON.
"""

from __future__ import annotations

import logging

from asgiref.sync import async_to_sync
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from . import services
from .forms import InlinksForm

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def inlinks(request: HttpRequest) -> JsonResponse:
    """Propose internal links from the candidate URLs into the principal page."""

    form = InlinksForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'errors': form.errors.get_json_data()}, status=400)

    principal_url = form.cleaned_data['principal_url']
    try:
        payload = async_to_sync(services.analyse_inlinks)(
            principal_url,
            form.cleaned_data['analysis_urls'],
        )
    except Exception:
        logger.exception('Failed to process inlinks for %s', principal_url)
        return JsonResponse({'error': 'Failed to process the URLs.'}, status=500)

    payload['message'] = 'Inlinks analysed successfully.'
    return JsonResponse(payload)
