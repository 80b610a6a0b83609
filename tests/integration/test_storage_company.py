"""
Integration tests for object storage and company settings.
"""
import pytest

from models.company import CompanySettings
from orders.company import CompanySettingsService
from orders.errors import ConflictError, NotFoundError, ValidationError


@pytest.mark.integration
class TestObjectStorage:
    """Integration tests for ObjectStorage."""

    def test_upload_and_resolve(self, test_storage):
        """Test an uploaded object gets a public URL and can be read back."""
        url = test_storage.upload("products", "bagues/bague-or.png", b"png-bytes")
        assert url == "http://testserver/storage/products/bagues/bague-or.png"
        assert test_storage.resolve("products", "bagues/bague-or.png").read_bytes() == b"png-bytes"

    def test_no_overwrite_without_upsert(self, test_storage):
        """Test existing objects are only replaced with upsert."""
        test_storage.upload("logos", "logo.png", b"v1")
        with pytest.raises(ConflictError):
            test_storage.upload("logos", "logo.png", b"v2")
        test_storage.upload("logos", "logo.png", b"v2", upsert=True)
        assert test_storage.resolve("logos", "logo.png").read_bytes() == b"v2"

    def test_public_url_strips_leading_slash(self, test_storage):
        """Test absolute-looking paths are treated as bucket-relative."""
        assert test_storage.get_public_url("logos", "/a.png") == "http://testserver/storage/logos/a.png"

    def test_path_traversal_rejected(self, test_storage):
        """Test paths escaping the bucket are refused."""
        with pytest.raises(ValidationError):
            test_storage.upload("logos", "../../amg.db", b"x")

    def test_bad_bucket_name(self, test_storage):
        """Test bucket names are restricted."""
        with pytest.raises(ValidationError):
            test_storage.upload("Logos Dir", "a.png", b"x")

    def test_missing_object(self, test_storage):
        """Test resolving an object that was never stored."""
        with pytest.raises(NotFoundError):
            test_storage.resolve("logos", "absent.png")


@pytest.mark.integration
class TestCompanySettings:
    """Integration tests for CompanySettingsService."""

    @pytest.fixture
    def company(self, test_backend, test_storage):
        return CompanySettingsService(test_backend, test_storage)

    def test_defaults_before_first_save(self, company):
        """Test unsaved settings fall back to the default company name."""
        settings = company.get()
        assert settings.id is None
        assert settings.company_name == "AMG Bijoux"

    def test_save_then_update_single_row(self, company, test_backend):
        """Test saving twice keeps one row."""
        company.save(CompanySettings(company_name="AMG Bijoux", siret="123 456 789 00012"))
        saved = company.save(CompanySettings(company_name="AMG Bijoux SARL", email="contact@amg.fr"))
        assert saved.company_name == "AMG Bijoux SARL"
        assert saved.siret is None
        assert test_backend.table_counts()["amg_company_settings"] == 1

    def test_company_name_required(self, company):
        """Test an empty company name is rejected."""
        with pytest.raises(ValidationError):
            company.save(CompanySettings(company_name="  "))

    def test_logo_upload(self, company, test_storage):
        """Test the logo is stored as company-logo.<ext> and linked in settings."""
        settings = company.upload_logo("Mon Logo.PNG", b"logo-bytes")
        assert settings.logo_url == "http://testserver/storage/logos/company-logo.png"
        assert test_storage.resolve("logos", "company-logo.png").read_bytes() == b"logo-bytes"

        # Second upload replaces the first
        company.upload_logo("nouveau.png", b"new-logo")
        assert test_storage.resolve("logos", "company-logo.png").read_bytes() == b"new-logo"

    def test_logo_type_checked(self, company):
        """Test non-image files are refused."""
        with pytest.raises(ValidationError):
            company.upload_logo("logo.gif", b"x")
        with pytest.raises(ValidationError):
            company.upload_logo("logo.png", b"")
