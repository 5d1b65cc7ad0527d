"""Forms for the inlinks app.

The form validates the principal page and the list of candidate pages
posted to the inlinks endpoint.
"""

from __future__ import annotations

from django import forms

MAX_ANALYSIS_URLS = 100
MAX_URL_LENGTH = 255


class InlinksForm(forms.Form):
    """Principal URL plus newline-delimited candidate URLs."""

    principal_url = forms.URLField(
        max_length=MAX_URL_LENGTH,
        label='Principal URL',
        help_text='The page that will receive the new internal links.',
    )
    analysis_urls = forms.CharField(
        widget=forms.Textarea(
            attrs={
                'rows': 10,
                'placeholder': 'https://example.com/guide\nhttps://example.com/review',
            }
        ),
        label='Candidate URLs',
        help_text=f'One URL per line, up to {MAX_ANALYSIS_URLS}.',
    )

    def clean_analysis_urls(self) -> list[str]:
        """Parse one URL per line, ignoring blank lines."""

        raw_value = self.cleaned_data.get('analysis_urls', '')
        url_field = forms.URLField(max_length=MAX_URL_LENGTH)
        parsed: list[str] = []

        for index, line in enumerate(raw_value.splitlines(), start=1):
            candidate = line.strip()
            if not candidate:
                continue
            try:
                parsed.append(url_field.clean(candidate))
            except forms.ValidationError as exc:
                raise forms.ValidationError(
                    f'Line {index} has an invalid URL: {exc.messages[0]}'
                ) from exc

        if not parsed:
            raise forms.ValidationError('Provide at least one candidate URL.')
        if len(parsed) > MAX_ANALYSIS_URLS:
            raise forms.ValidationError(
                f'At most {MAX_ANALYSIS_URLS} candidate URLs are allowed (got {len(parsed)}).'
            )
        return parsed
