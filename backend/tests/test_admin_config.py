"""
Tests for admin configuration: pool resolution, routes and URLs, filters,
forms, role security, translation and templates.
"""

import pytest

from crud_admin.admin import Admin, AdminContext, AdminForm, AdminPool, AdminRequest, ChoiceFieldMask, FilterTypeRegistry
from crud_admin.admin.filters import BooleanFilter, ChoiceFilter, NumberFilter, StringFilter, default_filter_registry
from crud_admin.admin.querystring import build_query_string, parse_nested, split_key
from crud_admin.services.acl import MaskBuilder
from crud_admin.services.security import RoleSecurityHandler
from crud_admin.services.translator import Translator
from crud_shared.utils.exceptions import ConfigurationError, ForbiddenError, NotFoundError

from sample_app import Category, CategoryForm, Product, ProductForm


def make_ctx(admin, path_params=None, user=None, **request_options):
    request = AdminRequest.build(path_params=path_params, **request_options)
    return AdminContext(admin=admin, request=request, user=user)


class TestAdminPool:
    """Test admin registration and lookup by code."""

    def test_child_code_resolution(self, pool):
        """'parent|child' resolves to the child admin."""
        admin = pool.get_admin_by_admin_code("admin.category|admin.product")
        assert admin.code == "admin.product"
        assert admin.parent.code == "admin.category"

    def test_unknown_child(self, pool):
        with pytest.raises(NotFoundError):
            pool.get_admin_by_admin_code("admin.category|admin.unknown")

    def test_child_of_wrong_parent(self, pool):
        """Each code must be a child of the previous one."""
        with pytest.raises(NotFoundError):
            pool.get_admin_by_admin_code("admin.product|admin.category")

    def test_duplicate_code(self, pool):
        with pytest.raises(ConfigurationError):
            pool.add_admin(Admin("admin.category", Category, form_schema=CategoryForm))

    def test_children_are_registered(self, pool):
        """Adding a parent registers its children too."""
        assert pool.has_admin("admin.product")
        assert [admin.code for admin in pool.get_root_admins()] == ["admin.category"]

    def test_admin_by_class_only_returns_roots(self, pool):
        assert pool.get_admin_by_class(Category).code == "admin.category"
        assert pool.get_admin_by_class(Product) is None

    def test_audited_classes(self, pool):
        """Only admins declared as audited get a revision reader."""
        assert pool.audit_manager.has_reader(Category)
        assert not pool.audit_manager.has_reader(Product)


class TestAdminRoutes:
    """Test route paths and URL generation."""

    def test_child_route_path(self, pool):
        """Child paths nest under the parent's object path."""
        product_admin = pool.get_admin_by_admin_code("admin.category|admin.product")
        assert product_admin.get_route_path("edit") == "/admin/category/{id}/product/{child_id}/edit"
        assert product_admin.get_route_path("list") == "/admin/category/{id}/product/list"
        assert product_admin.route_name_prefix == "admin_category_admin_product"

    def test_child_object_url(self, pool):
        """The parent identifier comes from the current request."""
        product_admin = pool.get_admin_by_admin_code("admin.category|admin.product")
        ctx = make_ctx(product_admin, path_params={"id": "7"})
        assert product_admin.generate_object_url(ctx, "edit", Product(id=3)) == "/admin/category/7/product/3/edit"

    def test_missing_parent_identifier(self, pool):
        product_admin = pool.get_admin_by_admin_code("admin.category|admin.product")
        with pytest.raises(ConfigurationError):
            product_admin.generate_url(make_ctx(product_admin), "list")

    def test_query_parameters(self, pool):
        admin = pool.get_admin_by_admin_code("admin.category")
        url = admin.generate_url(make_ctx(admin), "list", {"filter": {"_page": 2}})
        assert url == "/admin/category/list?filter%5B_page%5D=2"

    def test_excluded_routes(self):
        admin = Admin("admin.category", Category, excluded_routes=["export", "history"])
        assert not admin.has_route("export")
        assert not admin.has_route("history")
        assert admin.has_route("edit")

    def test_acl_route_needs_acl(self):
        """The ACL route only exists for ACL-enabled admins."""
        assert not Admin("admin.category", Category).has_route("acl")
        assert Admin("admin.category", Category, acl_enabled=True).has_route("acl")

    def test_unknown_route(self, pool):
        with pytest.raises(ConfigurationError):
            pool.get_admin_by_admin_code("admin.category").get_route_path("archive")

    def test_already_a_child(self):
        """An admin cannot serve two parents."""
        first = Admin("admin.category", Category)
        second = Admin("admin.other", Category)
        child = Admin("admin.product", Product)
        first.add_child(child, "category")
        with pytest.raises(ConfigurationError):
            second.add_child(child, "category")


class TestAccessChecks:
    """Test access checks on the admin descriptor."""

    def test_forbidden(self, pool):
        admin = pool.get_admin_by_admin_code("admin.category")
        with pytest.raises(ForbiddenError):
            admin.check_access(make_ctx(admin, user={"sub": "bob", "roles": ["ROLE_ADMIN_CATEGORY_LIST"]}), "edit")

    def test_granted(self, pool):
        admin = pool.get_admin_by_admin_code("admin.category")
        ctx = make_ctx(admin, user={"sub": "bob", "roles": ["ROLE_ADMIN_CATEGORY_LIST"]})
        admin.check_access(ctx, "list")

    def test_unknown_action(self, pool):
        """An action missing from the access mapping is a configuration error, not a 403."""
        admin = pool.get_admin_by_admin_code("admin.category")
        with pytest.raises(ConfigurationError):
            admin.check_access(make_ctx(admin, user={"sub": "admin", "roles": ["ROLE_SUPER_ADMIN"]}), "archive")

    def test_route_access_names(self, pool):
        """Route names of the history pages map to their access actions."""
        admin = pool.get_admin_by_admin_code("admin.category")
        ctx = make_ctx(admin, user={"sub": "bob", "roles": ["ROLE_ADMIN_CATEGORY_EDIT"]})
        assert admin.has_access(ctx, "history_view_revision")
        assert not admin.has_access(ctx, "export")


class TestRoleSecurityHandler:
    """Test role-based permission checks."""

    @pytest.fixture
    def handler(self):
        return RoleSecurityHandler({"ROLE_MANAGER": ["ROLE_ADMIN_CATEGORY_EDIT", "ROLE_STAFF"]})

    @pytest.fixture
    def admin(self):
        return Admin("admin.category", Category)

    def test_base_role(self, handler, admin):
        assert handler.get_base_role(admin) == "ROLE_ADMIN_CATEGORY_%s"

    def test_reachable_roles(self, handler):
        assert handler.get_reachable_roles(["ROLE_MANAGER"]) == {"ROLE_MANAGER", "ROLE_ADMIN_CATEGORY_EDIT", "ROLE_STAFF"}

    def test_inherited_role_grants(self, handler, admin):
        ctx = make_ctx(admin, user={"sub": "carol", "roles": ["ROLE_MANAGER"]})
        assert handler.is_granted(admin, ctx, "EDIT")
        assert not handler.is_granted(admin, ctx, "DELETE")

    def test_all_role(self, handler, admin):
        ctx = make_ctx(admin, user={"sub": "carol", "roles": ["ROLE_ADMIN_CATEGORY_ALL"]})
        assert handler.is_granted(admin, ctx, ["DELETE", "EXPORT"])

    def test_super_admin(self, handler, admin):
        ctx = make_ctx(admin, user={"sub": "root", "roles": ["ROLE_SUPER_ADMIN"]})
        assert handler.is_granted(admin, ctx, "MASTER")

    def test_anonymous(self, handler, admin):
        assert not handler.is_granted(admin, make_ctx(admin), "LIST")

    def test_security_information(self, handler, admin):
        information = handler.build_security_information(admin)
        assert information["ROLE_ADMIN_CATEGORY_EDIT"] == ["EDIT"]
        assert "ROLE_ADMIN_CATEGORY_MASTER" in information


class TestMaskBuilder:
    """Test permission masks."""

    def test_add_and_remove(self):
        builder = MaskBuilder().add("VIEW").add("EDIT")
        assert builder.get_mask() == 5
        assert builder.remove("VIEW").get_mask() == 4

    def test_unknown_permission(self):
        with pytest.raises(ValueError):
            MaskBuilder().add("PUBLISH")


class TestFilterTypeRegistry:
    """Test filter type registration."""

    def test_default_aliases(self):
        registry = default_filter_registry()
        assert registry.resolve("string") is StringFilter
        assert registry.resolve("number") is NumberFilter
        assert registry.resolve("boolean") is BooleanFilter
        assert registry.resolve("choice") is ChoiceFilter

    def test_resolve_by_class_path(self):
        registry = default_filter_registry()
        assert registry.resolve(StringFilter.type_name()) is StringFilter
        assert registry.resolve(NumberFilter) is NumberFilter

    def test_unknown_type(self):
        registry = default_filter_registry()
        assert not registry.has("date")
        with pytest.raises(ConfigurationError):
            registry.create("date", "created_at")

    def test_alias_conflict(self):
        """An alias cannot point at two filter types."""

        class OtherStringFilter(StringFilter):
            pass

        registry = default_filter_registry()
        with pytest.raises(ConfigurationError):
            registry.add(OtherStringFilter)

    def test_registering_twice_is_allowed(self):
        registry = FilterTypeRegistry()
        registry.add(StringFilter)
        registry.add(StringFilter)
        assert registry.has("string")

    def test_custom_alias(self):
        registry = default_filter_registry()
        registry.add(NumberFilter, alias="price")
        assert registry.create("price", "price").name == "price"


class TestFilters:
    """Test filter value normalization."""

    @pytest.mark.parametrize("value,expected", [
        ({"value": "1"}, True),
        ({"value": "no"}, False),
        ({"value": ""}, None),
        ("maybe", None),
    ])
    def test_boolean(self, value, expected):
        assert BooleanFilter("active").normalize(value) is expected

    def test_number(self):
        assert NumberFilter("price").normalize({"value": "2.5"}) == 2.5
        assert NumberFilter("price").normalize({"value": "abc"}) is None

    def test_choice_ignores_unknown_values(self):
        filter_ = ChoiceFilter("status", choices={"draft": "Draft"})
        assert filter_.normalize({"value": "draft"}) == "draft"
        assert filter_.normalize({"value": "deleted"}) is None

    def test_unknown_column(self, db_session):
        from crud_admin.admin.datagrid import ProxyQuery

        with pytest.raises(ConfigurationError):
            StringFilter("title").apply(ProxyQuery(db_session, Category), {"value": "x"})


class TestAdminForm:
    """Test form binding and validation."""

    def test_prefill_from_object(self):
        form = AdminForm(CategoryForm, version_attribute="version")
        form.set_data(Category(name="Drinks", active=True, version=3))
        view = form.create_view()
        assert [(field.name, field.value) for field in view.fields] == [("name", "Drinks"), ("active", True)]
        assert view.lock_version == 3
        assert view.fields[1].input_type == "checkbox"

    def test_get_is_not_submitted(self):
        form = AdminForm(CategoryForm)
        form.set_data(Category())
        form.handle_request(AdminRequest.build("GET", query={"name": "x"}))
        assert not form.is_submitted()
        assert not form.is_valid()

    def test_unchecked_checkbox_is_false(self):
        form = AdminForm(CategoryForm)
        form.set_data(Category(name="Drinks", active=True))
        form.handle_request(AdminRequest.build("POST", form=[("_form", "1"), ("name", "Drinks")]))
        assert form.is_valid()
        assert form.get_data().active is False

    def test_empty_optional_is_none(self):
        form = AdminForm(ProductForm)
        form.set_data(Product(name="Tea", price=3.0))
        form.handle_request(AdminRequest.build("POST", form=[("name", "Tea"), ("price", "")]))
        assert form.is_valid()
        assert form.get_data().price is None

    def test_errors_name_their_field(self):
        form = AdminForm(ProductForm)
        form.set_data(Product())
        form.handle_request(AdminRequest.build("POST", form=[("name", "Tea"), ("price", "-1")]))
        assert not form.is_valid()
        assert len(form.get_errors()) == 1
        assert form.get_errors()[0].startswith("price: ")
        assert form.create_view().fields[1].errors

    def test_invalid_data_is_not_written(self):
        product = Product(name="Tea")
        form = AdminForm(ProductForm)
        form.set_data(product)
        form.handle_request(AdminRequest.build("POST", form=[("name", ""), ("price", "1")]))
        assert form.get_data().name == "Tea"

    def test_lock_version_from_request(self):
        form = AdminForm(CategoryForm, version_attribute="version")
        form.set_data(Category(name="Drinks", version=2))
        form.handle_request(AdminRequest.build("POST", form=[("name", "Drinks"), ("_lock_version", "1")]))
        assert form.lock_version == "1"


class TestChoiceFieldMask:
    """Test choice field masks."""

    def test_sanitize(self):
        assert ChoiceFieldMask.sanitize("a__b.c") == "a____b__c"

    def test_build_view(self):
        mask = ChoiceFieldMask(
            "kind",
            {"url": "Link", "page": "Page"},
            {"url": ["target.url"], "page": ["target.page", "target.url"]},
        )
        view = mask.build_view()
        assert view["map"] == {"url": ["target__url"], "page": ["target__page", "target__url"]}
        assert view["all_fields"] == ["target__url", "target__page"]

    def test_mask_field_view(self):
        form = AdminForm(CategoryForm, masks=[ChoiceFieldMask("name", {"a": "A"}, {"a": ["active"]})])
        form.set_data(Category(name="a"))
        assert form.create_view().fields[0].input_type == "choice_mask"


class TestTranslator:
    """Test message lookup."""

    def test_default_domain(self):
        assert Translator().trans("flash_batch_empty") == "Action aborted. No items were selected."

    def test_parameters(self):
        message = Translator().trans("flash_create_success", {"name": "Drinks"})
        assert message == 'Item "Drinks" has been successfully created.'

    def test_percent_parameters(self):
        assert Translator({"App": {"hello": "Hi %who%"}}).trans("hello", {"%who%": "you"}, "App") == "Hi you"

    def test_domain_override_and_fallback(self):
        translator = Translator({"Shop": {"flash_batch_empty": "Pick something first."}})
        assert translator.trans("flash_batch_empty", domain="Shop") == "Pick something first."
        assert translator.trans("flash_acl_edit_success", domain="Shop") == "ACL has been successfully updated."

    def test_unknown_message(self):
        assert Translator().trans("Only drafts can be published.") == "Only drafts can be published."


class TestTemplateRegistry:
    """Test template lookup."""

    def test_admin_override(self, pool):
        admin = Admin("admin.special", Category, templates={"list": "special/list.html"})
        pool.add_admin(admin)
        assert admin.get_template_registry().get_template("list") == "special/list.html"
        assert admin.get_template_registry().get_template("edit") == "crud/edit.html"

    def test_unknown_template(self, pool):
        with pytest.raises(ConfigurationError):
            pool.template_registry.get_template("gallery")


class TestQueryString:
    """Test nested query-string parameters."""

    def test_split_key(self):
        assert split_key("filter[name][value]") == ["filter", "name", "value"]
        assert split_key("action") == ["action"]

    def test_parse_nested(self):
        items = [("filter[name][value]", "dr"), ("filter[_page]", "2"), ("other", "x")]
        assert parse_nested(items, "filter") == {"name": {"value": "dr"}, "_page": "2"}

    def test_build_query_string(self):
        query = build_query_string({"a": True, "b": None, "idx": ["1", "2"]})
        assert query == "a=1&idx%5B%5D=1&idx%5B%5D=2"


class TestStandalonePool:
    """A pool built without explicit settings."""

    def test_defaults(self):
        pool = AdminPool(route_prefix="/manage/")
        assert pool.route_prefix == "/manage"
        admin = pool.add_admin(Admin("admin.category", Category))
        assert admin.get_route_path("list") == "/manage/category/list"
        assert admin.get_default_per_page() == pool.per_page
