"""
Unit tests for the error CSV export
"""

from ingestion.exporters import render_errors_csv


class TestRenderErrorsCsv:

    def test_header_only_when_no_errors(self):
        assert render_errors_csv([]) == "rowNumber,name,email,phone,company,error\n"

    def test_row_error_line(self):
        errors = [{
            "rowNumber": 2,
            "message": "invalid email",
            "row": {"name": "Bob", "email": "not-an-email", "phone": "555", "company": "Acme"},
        }]

        lines = render_errors_csv(errors).splitlines()

        assert lines[1] == '2,"Bob","not-an-email","555","Acme","invalid email"'

    def test_quotes_are_doubled(self):
        errors = [{
            "rowNumber": 5,
            "message": "name is required",
            "row": {"name": 'The "Big" One', "email": "", "phone": "", "company": "Acme, Inc"},
        }]

        lines = render_errors_csv(errors).splitlines()

        assert lines[1] == '5,"The ""Big"" One","","","Acme, Inc","name is required"'

    def test_job_error_has_empty_row_fields(self):
        errors = [{"rowNumber": 0, "message": "Missing required headers: company"}]

        lines = render_errors_csv(errors).splitlines()

        assert lines[1] == '0,"","","","","Missing required headers: company"'

    def test_errors_keep_their_order(self):
        errors = [
            {"rowNumber": 3, "message": "duplicate email in file", "row": {}},
            {"rowNumber": 9, "message": "email already exists", "row": {}},
        ]

        lines = render_errors_csv(errors).splitlines()

        assert [line.split(",")[0] for line in lines[1:]] == ["3", "9"]
