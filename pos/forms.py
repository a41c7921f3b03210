from decimal import Decimal, InvalidOperation

from django import forms

from .permissions import ROLES


class CheckoutForm(forms.Form):
    """
    Customer name for a new order; blank means a counter sale.
    """
    customer_name = forms.CharField(max_length=100, required=False, label="Customer")


class IngredientForm(forms.Form):
    """
    Form used for adding or editing ingredients.
    """
    name = forms.CharField(max_length=255)
    quantity = forms.DecimalField(min_value=0, max_digits=12, decimal_places=3)
    min_quantity = forms.DecimalField(min_value=0, max_digits=12, decimal_places=3, label="Minimum")
    unit = forms.CharField(max_length=20, help_text="un, g, kg, ml, l")


class RestockForm(forms.Form):
    amount = forms.DecimalField(min_value=Decimal("0.001"), max_digits=12, decimal_places=3)


class ProductForm(forms.Form):
    """
    Form used for creating or editing a menu product and its recipe.
    """
    name = forms.CharField(max_length=100)
    price = forms.DecimalField(min_value=Decimal("0.01"), max_digits=10, decimal_places=2)
    description = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}))

    recipe = forms.CharField(
        max_length=1000,
        help_text="Format: ingredient1:qty1,ingredient2:qty2",
    )

    # Optional image upload (stored on S3)
    image = forms.ImageField(required=False)

    def __init__(self, *args, ingredients=(), **kwargs):
        """
        `ingredients` is the current ingredient list; recipe entries are
        matched against their names.
        """
        super().__init__(*args, **kwargs)
        self.ingredients = {i.name.lower(): i for i in ingredients}

    def clean_recipe(self):
        """
        Parse the recipe into a list of (ingredient id, quantity) pairs.
        """
        raw = self.cleaned_data["recipe"].strip()
        if not raw:
            raise forms.ValidationError("The recipe cannot be empty.")

        recipe = {}
        for entry in raw.split(","):
            if ":" not in entry:
                raise forms.ValidationError(
                    f"Invalid ingredient format: '{entry}'. Use ingredient:qty"
                )

            name, value = entry.rsplit(":", 1)
            name, value = name.strip(), value.strip()

            ingredient = self.ingredients.get(name.lower())
            if ingredient is None:
                raise forms.ValidationError(f"Unknown ingredient: {name}")
            try:
                quantity = Decimal(value)
            except InvalidOperation:
                raise forms.ValidationError(f"Invalid entry: {entry}")
            if quantity <= 0:
                raise forms.ValidationError(f"Invalid entry: {entry}")

            recipe[ingredient.id] = quantity

        return list(recipe.items())


def recipe_text(product, ingredient_names):
    """Render a product's recipe back into the ProductForm format."""
    return ",".join(
        f"{ingredient_names.get(line.ingredient_id, line.ingredient_id)}:{line.quantity.normalize():f}"
        for line in product.recipe
    )


class SettingsForm(forms.Form):
    brand_name = forms.CharField(max_length=100)
    text_color = forms.RegexField(
        regex=r"^#[0-9a-fA-F]{6}$", initial="#ffffff",
        widget=forms.TextInput(attrs={"type": "color"}),
    )
    accent_color = forms.RegexField(
        regex=r"^#[0-9a-fA-F]{6}$", initial="#f97316",
        widget=forms.TextInput(attrs={"type": "color"}),
    )
    background_image = forms.ImageField(required=False)


class TeamRoleForm(forms.Form):
    user_id = forms.CharField(widget=forms.HiddenInput)
    role = forms.ChoiceField(choices=[(r, r.capitalize()) for r in ROLES])
