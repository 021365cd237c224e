"""
Unit tests for mapping service.
"""
from submissions.services.mapping import apply_field_map, get_nested_value, set_nested_value


class TestGetNestedValue:
    """Tests for get_nested_value helper."""

    def test_simple_key(self):
        data = {'email': 'test@example.com'}
        assert get_nested_value(data, 'email') == 'test@example.com'

    def test_nested_key(self):
        data = {'contact': {'email': 'test@example.com'}}
        assert get_nested_value(data, 'contact.email') == 'test@example.com'

    def test_missing_key(self):
        data = {'email': 'test@example.com'}
        assert get_nested_value(data, 'phone') is None
        assert get_nested_value(data, 'phone', default='n/a') == 'n/a'

    def test_path_through_non_dict(self):
        data = {'contact': 'Ada'}
        assert get_nested_value(data, 'contact.email') is None

    def test_empty_path(self):
        assert get_nested_value({'a': 1}, '') is None


class TestSetNestedValue:
    """Tests for set_nested_value helper."""

    def test_simple_key(self):
        data = {}
        set_nested_value(data, 'email', 'test@example.com')
        assert data['email'] == 'test@example.com'

    def test_deeply_nested_key(self):
        data = {}
        set_nested_value(data, 'lead.contact.email', 'value')
        assert data['lead']['contact']['email'] == 'value'

    def test_overwrites_scalar_parent(self):
        data = {'lead': 'x'}
        set_nested_value(data, 'lead.id', 1)
        assert data == {'lead': {'id': 1}}


class TestApplyFieldMap:
    """Tests for building generic CRM request bodies."""

    def setup_method(self):
        self.payload = {
            'submissionId': 'abc',
            'contact': {'firstName': 'Ada', 'email': 'a@b.com', 'phone': None},
            'answers': {'startDate': 'fall'},
        }

    def test_maps_source_paths_to_target_paths(self):
        body = apply_field_map(self.payload, {
            'lead.first': 'contact.firstName',
            'lead.email': 'contact.email',
            'extra.start': 'answers.startDate',
        })
        assert body == {
            'lead': {'first': 'Ada', 'email': 'a@b.com'},
            'extra': {'start': 'fall'},
        }

    def test_missing_and_null_sources_are_omitted(self):
        body = apply_field_map(self.payload, {'phone': 'contact.phone', 'fax': 'contact.fax'})
        assert body == {}

    def test_static_fields_are_included(self):
        body = apply_field_map(
            self.payload,
            {'email': 'contact.email'},
            {'source': 'lead-relay', 'meta.vendor': 'acme'},
        )
        assert body == {'source': 'lead-relay', 'meta': {'vendor': 'acme'}, 'email': 'a@b.com'}

    def test_mapped_values_override_static_fields(self):
        body = apply_field_map(self.payload, {'email': 'contact.email'}, {'email': 'static@x.com'})
        assert body['email'] == 'a@b.com'

    def test_empty_map_copies_payload(self):
        body = apply_field_map(self.payload, {})
        assert body == self.payload
        assert body is not self.payload
