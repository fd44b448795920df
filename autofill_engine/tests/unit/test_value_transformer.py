import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../..')))

from autofill_engine.core.models import FieldDescriptor
from autofill_engine.core.taxonomy import Taxonomy
from autofill_engine.tools.value_transformer import (
    BooleanTransformer,
    DateTransformer,
    DegreeTransformer,
    NameTransformer,
    PhoneTransformer,
    match_option,
    strip_country_code,
    transform_value,
)


def field(label="", options=None, tag="input", **attributes):
    return FieldDescriptor(index=0, label_text=label, attributes=attributes,
                           options=list(options or []), tag_name=tag)


class TestNameTransformer(unittest.TestCase):

    def setUp(self):
        self.transformer = NameTransformer()

    def test_split_english_name(self):
        self.assertEqual(self.transformer.transform("Jane Doe", field("First Name")), "Jane")
        self.assertEqual(self.transformer.transform("Jane Q. Doe", field("Last Name")), "Doe")
        self.assertEqual(self.transformer.transform("Jane Doe", field("Full name")), "Jane Doe")

    def test_split_chinese_name(self):
        self.assertEqual(self.transformer.transform("张三", field("名")), "三")
        self.assertEqual(self.transformer.transform("张三", field("姓")), "张")
        self.assertEqual(self.transformer.transform("张三", field("姓名")), "张三")

    def test_explicit_target_type(self):
        self.assertEqual(self.transformer.transform("Jane Doe", field("Your name"), Taxonomy.FIRST_NAME), "Jane")

    def test_merge(self):
        self.assertEqual(NameTransformer.merge("Jane", "Doe"), "Jane Doe")
        self.assertEqual(NameTransformer.merge("三", "张"), "张三")


class TestDateTransformer(unittest.TestCase):

    def setUp(self):
        self.transformer = DateTransformer()

    def test_parse_formats(self):
        parsed = self.transformer.parse_date("2024-05-15")
        self.assertEqual((parsed.year, parsed.month, parsed.day), (2024, 5, 15))
        parsed = self.transformer.parse_date("05/15/2024")
        self.assertEqual((parsed.year, parsed.month, parsed.day), (2024, 5, 15))
        self.assertEqual(self.transformer.parse_date("2024").year, 2024)
        self.assertEqual(self.transformer.parse_date("May 2024").month, 5)
        self.assertEqual(self.transformer.parse_date("2024年5月").month, 5)
        self.assertIsNone(self.transformer.parse_date("next spring"))

    def test_date_and_month_inputs(self):
        self.assertEqual(self.transformer.transform("05/15/2024", field(type="date")), "2024-05-15")
        self.assertEqual(self.transformer.transform("2024-05-15", field(type="month")), "2024-05")

    def test_year_and_month_targets(self):
        self.assertEqual(self.transformer.transform("2024-05-15", field("Graduation Year")), "2024")
        self.assertEqual(self.transformer.transform("2024-05-15", field("Graduation Month")), "5")
        self.assertEqual(self.transformer.transform("2024-05", field("When"), Taxonomy.GRAD_YEAR), "2024")

    def test_month_select_options(self):
        full = ["January", "February", "March", "April", "May", "June"]
        short = ["Jan", "Feb", "Mar", "Apr", "May", "Jun"]
        numeric = [str(i) for i in range(1, 13)]
        padded = [f"{i:02d}" for i in range(1, 13)]
        self.assertEqual(self.transformer.transform("2024-03", field("Month", full, "select")), "March")
        self.assertEqual(self.transformer.transform("2024-03", field("Month", short, "select")), "Mar")
        self.assertEqual(self.transformer.transform("2024-05", field("Month", numeric, "select")), "5")
        self.assertEqual(self.transformer.transform("2024-05", field("Month", padded, "select")), "05")

    def test_year_select_options(self):
        years = ["2026", "2025", "2024", "2023"]
        self.assertEqual(self.transformer.transform("2024-05-15", field("Year", years, "select")), "2024")

    def test_unparseable_value_unchanged(self):
        self.assertEqual(self.transformer.transform("next spring", field(type="date")), "next spring")


class TestPhoneTransformer(unittest.TestCase):

    def setUp(self):
        self.transformer = PhoneTransformer()

    def test_parse(self):
        parsed = self.transformer.parse_phone("+1 (415) 555-1234")
        self.assertEqual((parsed.country_code, parsed.number), ("1", "4155551234"))
        parsed = self.transformer.parse_phone("+8613812345678")
        self.assertEqual((parsed.country_code, parsed.number), ("86", "13812345678"))
        parsed = self.transformer.parse_phone("415.555.1234")
        self.assertEqual((parsed.country_code, parsed.number), (None, "4155551234"))
        self.assertIsNone(self.transformer.parse_phone("call me"))

    def test_formats(self):
        value = "+1 4155551234"
        self.assertEqual(self.transformer.transform(value, field("Phone")), "+1 4155551234")
        self.assertEqual(self.transformer.transform(value, field("Country code")), "+1")
        self.assertEqual(self.transformer.transform(value, field("Phone", maxlength="10")), "4155551234")
        self.assertEqual(self.transformer.transform(value, field("Phone", placeholder="(555) 555-5555")),
                         "(415) 555-1234")
        self.assertEqual(self.transformer.transform(value, field("Phone", placeholder="555-555-5555")),
                         "415-555-1234")
        self.assertEqual(self.transformer.transform("(415) 555-1234", field("Phone")), "4155551234")

    def test_country_code_option(self):
        options = ["United States (+1)", "China (+86)", "Canada (+1)"]
        f = field("Country", options, "select")
        self.assertEqual(self.transformer.transform("+86 13812345678", f, Taxonomy.COUNTRY_CODE), "China (+86)")
        self.assertEqual(self.transformer.transform("+1 4155551234", f, Taxonomy.COUNTRY_CODE),
                         "United States (+1)")


class TestBooleanTransformer(unittest.TestCase):

    def setUp(self):
        self.transformer = BooleanTransformer()

    def test_checkbox(self):
        self.assertEqual(self.transformer.transform("Yes", field(type="checkbox")), "true")
        self.assertEqual(self.transformer.transform("no", field(type="checkbox")), "false")

    def test_options(self):
        options = ["Select...", "Yes", "No"]
        self.assertEqual(self.transformer.transform("true", field("Authorized?", options, "select")), "Yes")
        self.assertEqual(self.transformer.transform("否", field("Authorized?", options, "select")), "No")
        verbose = ["Yes, I am authorized", "No, I am not authorized"]
        self.assertEqual(self.transformer.transform("no", field("", verbose, "select")), "No, I am not authorized")

    def test_defaults_and_passthrough(self):
        self.assertEqual(self.transformer.transform("yes", field("Authorized?")), "Yes")
        self.assertEqual(self.transformer.transform("maybe", field("Authorized?")), "maybe")


class TestDegreeTransformer(unittest.TestCase):

    def setUp(self):
        self.transformer = DegreeTransformer()
        self.options = ["", "High School", "Associate Degree", "Bachelor's Degree", "Master's Degree", "Ph.D."]

    def test_aliases(self):
        f = field("Degree", self.options, "select")
        self.assertEqual(self.transformer.transform("bachelor's", f), "Bachelor's Degree")
        self.assertEqual(self.transformer.transform("BS", f), "Bachelor's Degree")
        self.assertEqual(self.transformer.transform("本科", f), "Bachelor's Degree")
        self.assertEqual(self.transformer.transform("MSc", f), "Master's Degree")
        self.assertEqual(self.transformer.transform("phd", f), "Ph.D.")
        self.assertEqual(self.transformer.transform("doctorate", f), "Ph.D.")
        self.assertEqual(self.transformer.transform("博士", f), "Ph.D.")
        self.assertEqual(self.transformer.transform("associate", f), "Associate Degree")

    def test_no_match_returns_original(self):
        f = field("Degree", ["Option A", "Option B"], "select")
        self.assertEqual(self.transformer.transform("Master's", f), "Master's")


class TestTransformValue(unittest.TestCase):

    def test_dispatch_by_source_type(self):
        self.assertEqual(transform_value("Jane Doe", Taxonomy.FULL_NAME, field("First name"), Taxonomy.FIRST_NAME),
                         "Jane")
        self.assertEqual(transform_value("2024-05-15", Taxonomy.GRAD_DATE, field("Year"), Taxonomy.GRAD_YEAR),
                         "2024")

    def test_unknown_type_unchanged(self):
        self.assertEqual(transform_value("hello", Taxonomy.SUMMARY, field("About")), "hello")

    def test_choice_fields_snap_to_option(self):
        f = field("School", ["Stanford University", "MIT"], "select")
        self.assertEqual(transform_value("stanford university", Taxonomy.SCHOOL, f), "Stanford University")
        self.assertEqual(transform_value("University of Stanford", Taxonomy.SCHOOL, f), "Stanford University")
        self.assertEqual(transform_value("Harvard", Taxonomy.SCHOOL, f), "Harvard")

    def test_match_option(self):
        self.assertIsNone(match_option("x", []))
        self.assertEqual(match_option("mit", ["", "MIT"]), "MIT")


class TestStripCountryCode(unittest.TestCase):

    def test_strip(self):
        self.assertEqual(strip_country_code("+1 5551234567"), "5551234567")
        self.assertEqual(strip_country_code("+86 13812345678"), "13812345678")
        self.assertEqual(strip_country_code("+44 7911123456"), "7911123456")
        self.assertEqual(strip_country_code("+14155551234"), "4155551234")

    def test_without_prefix_unchanged(self):
        self.assertEqual(strip_country_code("4155551234"), "4155551234")
        self.assertEqual(strip_country_code(""), "")


if __name__ == "__main__":
    unittest.main()
