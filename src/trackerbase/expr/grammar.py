"""Lark grammar for the textual expression syntax.

Supports:
- Arithmetic: +, -, *, /
- Comparison: =, ==, !=, <, >, <=, >=
- Logical: and, or, not
- Field references: {price} or {invoice_grid.price}
- Calls: if(cond, then, else), regex(value, "pattern", "flags")
- Literals: numbers, Infinity, NaN, strings, true, false, null
"""

EXPR_GRAMMAR = r"""
    ?start: expression

    ?expression: or_expr

    ?or_expr: and_expr
        | or_expr "or"i and_expr -> or_op

    ?and_expr: not_expr
        | and_expr "and"i not_expr -> and_op

    ?not_expr: comparison
        | "not"i not_expr -> not_op

    ?comparison: additive
        | additive "==" additive -> eq
        | additive "=" additive -> eq
        | additive "!=" additive -> neq
        | additive "<>" additive -> neq
        | additive "<=" additive -> lte
        | additive ">=" additive -> gte
        | additive "<" additive -> lt
        | additive ">" additive -> gt

    ?additive: multiplicative
        | additive "+" multiplicative -> add
        | additive "-" multiplicative -> sub

    ?multiplicative: unary
        | multiplicative "*" unary -> mul
        | multiplicative "/" unary -> div

    ?unary: atom
        | "-" unary -> neg
        | "+" unary

    ?atom: NUMBER -> number
        | STRING -> string
        | TRUE -> true
        | FALSE -> false
        | NULL -> null
        | INFINITY -> infinity
        | NAN -> nan
        | FIELD_REF -> field_ref
        | "if"i "(" expression "," expression "," expression ")" -> if_op
        | "regex"i "(" expression "," STRING ["," STRING] ")" -> regex_op
        | "(" expression ")"

    TRUE.2: "true"i
    FALSE.2: "false"i
    NULL.2: "null"i
    INFINITY.2: "Infinity"
    NAN.2: "NaN"

    // Field reference: {field_id} or {grid_id.field_id}
    FIELD_REF: "{" /[^{}]+/ "}"

    STRING: /"(?:[^"\\]|\\.)*"/ | /'(?:[^'\\]|\\.)*'/

    NUMBER: /(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?/

    %import common.WS
    %ignore WS
"""
