"""
Forms for the review dashboard.

Clean the user intents coming from the presentation layer:
- FilterChangeForm: filter changes (only submitted fields count as changes)
- ListingForm: sort / page / page size changes
- ReviewForm: review outcome and optional comment
"""

from django import forms

from .listing import SORT_ORDERS, get_sorting_options
from .models import ReviewStatus


class FilterChangeForm(forms.Form):
    """
    Filter change submitted by the dashboard.

    A field left out of the submission is not a change; a field submitted
    blank clears that filter.
    """

    company = forms.CharField(required=False, max_length=255)
    department = forms.CharField(required=False, max_length=255)
    team = forms.CharField(required=False, max_length=255)
    user_name = forms.CharField(required=False, max_length=150)
    status = forms.ChoiceField(
        required=False,
        choices=[('', 'All Statuses')] + list(ReviewStatus.choices),
    )
    start_date = forms.DateField(required=False)
    end_date = forms.DateField(required=False)
    search = forms.CharField(required=False, max_length=255)
    project = forms.CharField(required=False, max_length=255)
    user_level = forms.CharField(required=False, max_length=100)

    def get_changes(self):
        """Cleaned values for the fields present in the submitted data."""
        return {
            name: self.cleaned_data.get(name) or None
            for name in self.fields
            if name in self.data
        }


class ListingForm(forms.Form):
    sort_by = forms.ChoiceField(required=False, choices=get_sorting_options())
    sort_order = forms.ChoiceField(required=False, choices=[(o, o) for o in SORT_ORDERS])
    toggle_sort = forms.ChoiceField(
        required=False,
        choices=get_sorting_options(),
        help_text='Flip the order of the current sort field, or switch to this field descending',
    )
    page = forms.IntegerField(required=False, min_value=1)
    page_size = forms.IntegerField(required=False, min_value=1, max_value=100)
    server_page = forms.IntegerField(
        required=False,
        min_value=1,
        help_text='Batch of members to fetch from the task service',
    )

    def apply(self, listing):
        """Apply the cleaned changes to a ListingState."""
        data = self.cleaned_data
        if data.get('toggle_sort'):
            listing.toggle_sort(data['toggle_sort'])
        elif data.get('sort_by'):
            listing.set_sort(data['sort_by'], data.get('sort_order') or None)
        elif data.get('sort_order'):
            listing.set_sort(listing.sort_by, data['sort_order'])

        if data.get('page_size'):
            listing.set_page_size(data['page_size'])
        elif data.get('page'):
            listing.set_page(data['page'])

        if data.get('server_page'):
            listing.set_server_page(data['server_page'])
        return listing

    @property
    def changes_server_page(self):
        return bool(self.cleaned_data.get('server_page'))


class ReviewForm(forms.Form):
    outcome = forms.ChoiceField(
        choices=[
            (ReviewStatus.APPROVED, ReviewStatus.APPROVED.label),
            (ReviewStatus.REJECTED, ReviewStatus.REJECTED.label),
        ],
    )
    comment = forms.CharField(required=False, max_length=2000, widget=forms.Textarea)

    def clean_comment(self):
        return self.cleaned_data.get('comment', '').strip()
