"""
Tests for the list, create, edit, show and delete admin pages.
"""

from sqlalchemy import select

from crud_admin.models import AclEntry, AuditLog

from conftest import bearer, extract_csrf_token
from sample_app import Category, Product


XHR_JSON = {"X-Requested-With": "XMLHttpRequest", "Accept": "application/json"}


class TestListAction:
    """Test the list page."""

    def test_list_requires_authentication(self, client):
        """Unauthenticated request should fail."""
        response = client.get("/admin/category/list")
        assert response.status_code == 401

    def test_list_renders_objects(self, client, auth_headers, seed_categories):
        """Every category is listed with the total count."""
        response = client.get("/admin/category/list", headers=auth_headers)
        assert response.status_code == 200
        assert "Drinks" in response.text
        assert "Desserts" in response.text
        assert "3 results" in response.text

    def test_string_filter(self, client, auth_headers, seed_categories):
        """The string filter is a case-insensitive contains match."""
        response = client.get(
            "/admin/category/list",
            params={"filter[name][value]": "des"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert "Desserts" in response.text
        assert "Drinks" not in response.text
        assert "1 results" in response.text

    def test_string_filter_matches_wildcards_literally(self, client, auth_headers, db_session):
        """% and _ typed into the filter are plain characters."""
        db_session.add_all([
            Category(name="Sale 50%", active=True),
            Category(name="Sale 500", active=True),
            Category(name="Sale_1", active=True),
        ])
        db_session.commit()

        response = client.get(
            "/admin/category/list",
            params={"filter[name][value]": "50%"},
            headers=auth_headers,
        )
        assert "Sale 50%" in response.text
        assert "Sale 500" not in response.text
        assert "1 results" in response.text

        response = client.get(
            "/admin/category/list",
            params={"filter[name][value]": "e_"},
            headers=auth_headers,
        )
        assert "Sale_1" in response.text
        assert "Sale 50%" not in response.text
        assert "1 results" in response.text

    def test_boolean_filter(self, client, auth_headers, seed_categories):
        """The boolean filter keeps inactive categories only."""
        response = client.get(
            "/admin/category/list",
            params={"filter[active][value]": "0"},
            headers=auth_headers,
        )
        assert "Archived" in response.text
        assert "Drinks" not in response.text

    def test_paging(self, client, auth_headers, seed_categories):
        """Results are paged; the pager links to the next page."""
        response = client.get(
            "/admin/category/list",
            params={"filter[_per_page]": "2"},
            headers=auth_headers,
        )
        assert "3 results" in response.text
        assert response.text.count('name="idx[]"') == 2
        assert "filter%5B_page%5D=2" in response.text

    def test_list_mode_is_remembered(self, client, auth_headers, seed_category):
        """The list mode chosen once sticks for the following requests."""
        response = client.get("/admin/category/list", params={"_list_mode": "mosaic"}, headers=auth_headers)
        assert '<table class="mosaic">' in response.text

        response = client.get("/admin/category/list", headers=auth_headers)
        assert '<table class="mosaic">' in response.text

    def test_list_only_role(self, client, seed_category):
        """A user holding only the LIST role sees the list without create links."""
        headers = bearer("viewer", ["ROLE_ADMIN_CATEGORY_LIST"])
        response = client.get("/admin/category/list", headers=headers)
        assert response.status_code == 200
        assert "/admin/category/create" not in response.text

    def test_list_without_role_is_forbidden(self, client, seed_category):
        """A user without any admin role is rejected."""
        response = client.get("/admin/category/list", headers=bearer("nobody", []))
        assert response.status_code == 403

    def test_child_list_is_scoped_to_parent(self, client, auth_headers, db_session, seed_product):
        """The child list only shows products of the parent category."""
        other = Category(name="Food", active=True)
        db_session.add(other)
        db_session.add(Product(name="Burger", price=9.0, category=other))
        db_session.commit()

        response = client.get(f"/admin/category/{seed_product.category_id}/product/list", headers=auth_headers)
        assert response.status_code == 200
        assert "Lemonade" in response.text
        assert "Burger" not in response.text
        # Parent object in the breadcrumbs
        assert "Drinks" in response.text


class TestCreateAction:
    """Test the create page."""

    def test_create_form(self, client, auth_headers):
        """GET renders an empty form."""
        response = client.get("/admin/category/create", headers=auth_headers)
        assert response.status_code == 200
        assert 'name="_form"' in response.text
        assert 'name="btn_create_and_edit"' in response.text

    def test_create_and_edit(self, client, auth_headers, db_session):
        """A valid submission persists, audits and redirects to the edit page."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Snacks", "active": "1", "btn_create_and_edit": ""},
            headers=auth_headers,
            follow_redirects=False,
        )
        category = db_session.scalars(select(Category)).one()
        assert response.status_code == 302
        assert response.headers["location"] == f"/admin/category/{category.id}/edit"
        assert category.name == "Snacks"
        assert category.active is True

        audit = db_session.scalars(select(AuditLog)).one()
        assert audit.action == "CREATE"
        assert audit.user_id == "admin"

    def test_creator_becomes_owner(self, client, auth_headers, db_session):
        """Creating an object of an ACL-enabled admin grants OWNER to the creator."""
        client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Snacks"},
            headers=auth_headers,
            follow_redirects=False,
        )
        entry = db_session.scalars(select(AclEntry)).one()
        assert entry.identity == "admin"
        assert entry.identity_type == "user"
        assert entry.mask == 128

    def test_create_and_list(self, client, auth_headers):
        """The create-and-list button returns to the list."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Snacks", "btn_create_and_list": ""},
            headers=auth_headers,
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"].startswith("/admin/category/list")

    def test_create_and_create(self, client, auth_headers):
        """The create-and-create button opens a fresh create form."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Snacks", "btn_create_and_create": ""},
            headers=auth_headers,
            follow_redirects=False,
        )
        assert response.headers["location"] == "/admin/category/create"

    def test_success_flash_is_shown_once(self, client, auth_headers):
        """The success message is shown on the next page, then dropped."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Snacks", "btn_create_and_list": ""},
            headers=auth_headers,
        )
        assert 'Item "Snacks" has been successfully created.' in response.text

        response = client.get("/admin/category/list", headers=auth_headers)
        assert 'Item "Snacks" has been successfully created.' not in response.text

    def test_invalid_submission_rerenders(self, client, auth_headers, db_session):
        """An invalid form is never persisted; the form comes back with an error flash."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": ""},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert "An error has occurred during the creation of item" in response.text
        assert 'class="help-block"' in response.text
        assert db_session.scalars(select(Category)).all() == []

    def test_persistence_failure_degrades(self, client, auth_headers, db_session, seed_category):
        """A duplicate name fails in the database; the user gets the form back."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Drinks"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert 'An error has occurred during the creation of item "Drinks".' in response.text
        assert len(db_session.scalars(select(Category)).all()) == 1

    def test_xhr_success(self, client, auth_headers):
        """XML-HTTP submissions get the JSON envelope."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Snacks"},
            headers={**auth_headers, **XHR_JSON},
        )
        assert response.status_code == 200
        assert response.json() == {"result": "ok", "objectId": "1", "objectName": "Snacks"}

    def test_xhr_errors(self, client, auth_headers, seed_category):
        """Two invalid fields give exactly two error strings."""
        response = client.post(
            f"/admin/category/{seed_category.id}/product/create",
            data={"_form": "1", "name": "", "price": "-1"},
            headers={**auth_headers, **XHR_JSON},
        )
        assert response.status_code == 400
        data = response.json()
        assert data["result"] == "error"
        assert len(data["errors"]) == 2

    def test_xhr_without_json_accept(self, client, auth_headers):
        """A client that does not accept JSON gets 406 with an empty body."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Snacks"},
            headers={**auth_headers, "X-Requested-With": "XMLHttpRequest", "Accept": "text/html"},
        )
        assert response.status_code == 406
        assert response.json() == {}

    def test_child_create_links_parent(self, client, auth_headers, db_session, seed_category):
        """A product created under a category belongs to it."""
        response = client.post(
            f"/admin/category/{seed_category.id}/product/create",
            data={"_form": "1", "name": "Soda", "price": "1.5"},
            headers=auth_headers,
            follow_redirects=False,
        )
        product = db_session.scalars(select(Product)).one()
        assert response.status_code == 302
        assert response.headers["location"] == f"/admin/category/{seed_category.id}/product/{product.id}/edit"
        assert product.category_id == seed_category.id

    def test_create_forbidden(self, client, seed_category):
        """Create needs the CREATE role."""
        headers = bearer("viewer", ["ROLE_ADMIN_CATEGORY_LIST"])
        response = client.get("/admin/category/create", headers=headers)
        assert response.status_code == 403


class TestPreview:
    """Test the preview step of the create form."""

    def test_preview_does_not_persist(self, client, auth_headers, db_session):
        """Requesting a preview renders it and stores nothing."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Snacks", "btn_preview": ""},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert 'name="btn_preview_approve"' in response.text
        assert db_session.scalars(select(Category)).all() == []

    def test_approve_persists(self, client, auth_headers, db_session):
        """Approving the preview persists."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Snacks", "btn_preview_approve": ""},
            headers=auth_headers,
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert db_session.scalars(select(Category)).one().name == "Snacks"

    def test_decline_returns_to_form(self, client, auth_headers, db_session):
        """Declining shows the form again without persisting."""
        response = client.post(
            "/admin/category/create",
            data={"_form": "1", "name": "Snacks", "btn_preview_decline": ""},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert 'name="btn_create_and_edit"' in response.text
        assert db_session.scalars(select(Category)).all() == []


class TestEditAction:
    """Test the edit page."""

    def test_edit_form(self, client, auth_headers, seed_category):
        """GET renders the form prefilled with the lock version."""
        response = client.get(f"/admin/category/{seed_category.id}/edit", headers=auth_headers)
        assert response.status_code == 200
        assert 'value="Drinks"' in response.text
        assert 'name="_lock_version" value="1"' in response.text

    def test_edit_not_found(self, client, auth_headers):
        """An unknown identifier is a 404."""
        response = client.get("/admin/category/999/edit", headers=auth_headers)
        assert response.status_code == 404

    def test_not_found_before_access_check(self, client):
        """A missing object 404s even for a user who may not edit."""
        response = client.get("/admin/category/999/edit", headers=bearer("nobody", []))
        assert response.status_code == 404

    def test_update_and_edit(self, client, auth_headers, db_session, seed_category):
        """A valid submission updates, bumps the version and stays on the edit page."""
        response = client.post(
            f"/admin/category/{seed_category.id}/edit",
            data={"_form": "1", "_lock_version": "1", "name": "Juices", "active": "1", "btn_update_and_edit": ""},
            headers=auth_headers,
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"] == f"/admin/category/{seed_category.id}/edit"

        db_session.refresh(seed_category)
        assert seed_category.name == "Juices"
        assert seed_category.version == 2

    def test_update_keeps_tab(self, client, auth_headers, seed_category):
        """The current tab survives the redirect."""
        response = client.post(
            f"/admin/category/{seed_category.id}/edit",
            data={"_form": "1", "name": "Juices", "_tab": "general"},
            headers=auth_headers,
            follow_redirects=False,
        )
        assert response.headers["location"] == f"/admin/category/{seed_category.id}/edit?_tab=general"

    def test_update_and_list(self, client, auth_headers, seed_category):
        """The update-and-list button wins over the edit page."""
        response = client.post(
            f"/admin/category/{seed_category.id}/edit",
            data={"_form": "1", "name": "Juices", "btn_update_and_list": ""},
            headers=auth_headers,
            follow_redirects=False,
        )
        assert response.headers["location"].startswith("/admin/category/list")

    def test_stale_lock_version(self, client, auth_headers, db_session, seed_category):
        """A stale lock version is reported with a reload link and nothing is saved."""
        response = client.post(
            f"/admin/category/{seed_category.id}/edit",
            data={"_form": "1", "_lock_version": "7", "name": "Juices"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert 'Another user has modified item "Drinks".' in response.text
        assert f'<a href="/admin/category/{seed_category.id}/edit">click here</a>' in response.text

        db_session.refresh(seed_category)
        assert seed_category.name == "Drinks"

    def test_invalid_edit_is_not_saved(self, client, auth_headers, db_session, seed_category):
        """Invalid values never reach the database."""
        response = client.post(
            f"/admin/category/{seed_category.id}/edit",
            data={"_form": "1", "name": ""},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert 'An error has occurred during update of item "Drinks".' in response.text

        db_session.refresh(seed_category)
        assert seed_category.name == "Drinks"

    def test_xhr_update(self, client, auth_headers, seed_category):
        """XML-HTTP edits get the JSON envelope."""
        response = client.post(
            f"/admin/category/{seed_category.id}/edit",
            data={"_form": "1", "name": "Juices"},
            headers={**auth_headers, **XHR_JSON},
        )
        assert response.json() == {
            "result": "ok",
            "objectId": str(seed_category.id),
            "objectName": "Juices",
        }


class TestShowAction:
    """Test the show page."""

    def test_show(self, client, auth_headers, seed_category):
        """Show lists the configured fields."""
        response = client.get(f"/admin/category/{seed_category.id}/show", headers=auth_headers)
        assert response.status_code == 200
        assert "Drinks" in response.text
        assert f"/admin/category/{seed_category.id}/history" in response.text

    def test_show_not_found(self, client, auth_headers):
        """An unknown identifier is a 404."""
        response = client.get("/admin/category/abc/show", headers=auth_headers)
        assert response.status_code == 404


class TestDeleteAction:
    """Test the delete confirmation and deletion."""

    def test_delete_confirmation(self, client, auth_headers, seed_category):
        """GET asks for confirmation."""
        response = client.get(f"/admin/category/{seed_category.id}/delete", headers=auth_headers)
        assert response.status_code == 200
        assert "Are you sure you want to delete the selected" in response.text
        assert "Drinks" in response.text
        assert 'name="_method" value="DELETE"' in response.text

    def test_delete(self, client, auth_headers, db_session, seed_category):
        """A confirmed delete removes the object and returns to the list."""
        page = client.get(f"/admin/category/{seed_category.id}/delete", headers=auth_headers)
        token = extract_csrf_token(page.text)

        response = client.post(
            f"/admin/category/{seed_category.id}/delete",
            data={"_method": "DELETE", "_csrf_token": token},
            headers=auth_headers,
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"].startswith("/admin/category/list")
        assert db_session.scalars(select(Category)).all() == []

        audit = db_session.scalars(select(AuditLog).where(AuditLog.action == "DELETE")).one()
        assert audit.entity_id == "1"

        listing = client.get(response.headers["location"], headers=auth_headers)
        assert 'Item "Drinks" has been deleted successfully.' in listing.text

    def test_delete_xhr(self, client, auth_headers, db_session, seed_category):
        """XML-HTTP deletes answer with a result envelope."""
        page = client.get(f"/admin/category/{seed_category.id}/delete", headers=auth_headers)
        token = extract_csrf_token(page.text)

        response = client.post(
            f"/admin/category/{seed_category.id}/delete",
            data={"_method": "DELETE", "_csrf_token": token},
            headers={**auth_headers, **XHR_JSON},
        )
        assert response.json() == {"result": "ok"}

    def test_delete_with_invalid_csrf(self, client, auth_headers, db_session, seed_category):
        """A wrong CSRF token is a 400 and nothing is deleted."""
        response = client.post(
            f"/admin/category/{seed_category.id}/delete",
            data={"_method": "DELETE", "_csrf_token": "forged"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert len(db_session.scalars(select(Category)).all()) == 1

    def test_access_checked_before_delete(self, client, db_session, seed_category):
        """A user without DELETE is rejected before anything is removed."""
        headers = bearer("viewer", ["ROLE_ADMIN_CATEGORY_LIST"])
        response = client.post(
            f"/admin/category/{seed_category.id}/delete",
            data={"_method": "DELETE"},
            headers=headers,
        )
        assert response.status_code == 403
        assert len(db_session.scalars(select(Category)).all()) == 1
