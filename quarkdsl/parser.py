"""
QuarkDSL Parser
===============

Recursive-descent parser: token list -> Program AST.

Grammar (informal):
    program    := function* EOF
    function   := ('@gpu' | '@quantum')? 'fn' IDENT '(' params? ')' '->' type '{' stmt* '}'
    params     := IDENT ':' type (',' IDENT ':' type)*
    type       := int | float | bool | qubit | void | qstate
                | tensor '<' type '>' | '[' type (';' INT)? ']'
    stmt       := let | return | for | if | assign | expr ';'
    expr       := or
    or         := and ('||' and)*
    and        := equality ('&&' equality)*
    equality   := relational (('==' | '!=') relational)*
    relational := additive (('<' | '<=' | '>' | '>=') additive)*
    additive   := term (('+' | '-') term)*
    term       := unary (('*' | '/' | '%') unary)*
    unary      := ('-' | '!') unary | postfix
    postfix    := primary ('[' expr ']' | '(' args? ')')*
    primary    := INT | FLOAT | true | false | IDENT | '[' elems? ']'
                | '(' expr ')' | 'map' '(' IDENT ',' expr ')'

The first error aborts the parse.
"""

from typing import Callable, Dict, List, Optional

from .ast import (
    ArrayLiteral,
    Assign,
    Binary,
    BinaryOp,
    BoolLiteral,
    Call,
    Domain,
    ExprStatement,
    Expression,
    FloatLiteral,
    For,
    Function,
    If,
    Index,
    IntLiteral,
    Let,
    MapExpr,
    Param,
    Program,
    Return,
    Statement,
    Type,
    TypeKind,
    Unary,
    UnaryOp,
    Variable,
)
from .errors import ParseError
from .lexer import Token, TokenType, tokenize


SIMPLE_TYPES = {
    TokenType.INT: TypeKind.INT,
    TokenType.FLOAT: TypeKind.FLOAT,
    TokenType.BOOL: TypeKind.BOOL,
    TokenType.QUBIT: TypeKind.QUBIT,
    TokenType.VOID: TypeKind.VOID,
    TokenType.QSTATE: TypeKind.QSTATE,
}

DOMAIN_ANNOTATIONS = {
    TokenType.GPU_ANNOTATION: Domain.GPU,
    TokenType.QUANTUM_ANNOTATION: Domain.QUANTUM,
}

# Binary precedence levels, loosest first
EQUALITY_OPS = {TokenType.EQ_EQ: BinaryOp.EQ, TokenType.NE: BinaryOp.NE}
RELATIONAL_OPS = {
    TokenType.LT: BinaryOp.LT,
    TokenType.LE: BinaryOp.LE,
    TokenType.GT: BinaryOp.GT,
    TokenType.GE: BinaryOp.GE,
}
ADDITIVE_OPS = {TokenType.PLUS: BinaryOp.ADD, TokenType.MINUS: BinaryOp.SUB}
MULTIPLICATIVE_OPS = {
    TokenType.STAR: BinaryOp.MUL,
    TokenType.SLASH: BinaryOp.DIV,
    TokenType.PERCENT: BinaryOp.MOD,
}


class QuarkParser:
    """
    Parser for QuarkDSL -> AST.

    One token of lookahead. The only backtracking is a checkpoint taken
    when a statement starts with an identifier: if the next token is
    neither '=' nor '[', the parser rewinds and reads an expression
    statement instead.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def parse(self) -> Program:
        """Parse the full token list into a Program."""
        functions = []
        while not self._check(TokenType.EOF):
            functions.append(self._parse_function())
        return Program(functions)

    # -------------------------------------------------------------------------
    # Declarations
    # -------------------------------------------------------------------------

    def _parse_function(self) -> Function:
        domain = Domain.CLASSICAL
        if self._current().type in DOMAIN_ANNOTATIONS:
            domain = DOMAIN_ANNOTATIONS[self._advance().type]

        self._expect(TokenType.FN)
        name = self._expect(TokenType.IDENTIFIER).value

        self._expect(TokenType.LPAREN)
        params = self._parse_params()
        self._expect(TokenType.RPAREN)

        self._expect(TokenType.ARROW)
        return_type = self._parse_type()

        body = self._parse_block()
        return Function(name, params, return_type, body, domain)

    def _parse_params(self) -> List[Param]:
        params: List[Param] = []
        if self._check(TokenType.RPAREN):
            return params

        while True:
            name = self._expect(TokenType.IDENTIFIER).value
            self._expect(TokenType.COLON)
            params.append(Param(name, self._parse_type()))
            if not self._match(TokenType.COMMA):
                return params

    def _parse_type(self) -> Type:
        token = self._advance()

        if token.type in SIMPLE_TYPES:
            return Type(SIMPLE_TYPES[token.type])

        if token.type == TokenType.TENSOR:
            self._expect(TokenType.LT)
            element = self._parse_type()
            self._expect(TokenType.GT)
            return Type(TypeKind.TENSOR, element)

        if token.type == TokenType.LBRACKET:
            element = self._parse_type()
            size = None
            if self._match(TokenType.SEMICOLON):
                size = self._expect(TokenType.INT_LITERAL).value
            self._expect(TokenType.RBRACKET)
            return Type(TypeKind.ARRAY, element, size)

        raise ParseError(f"Expected type, found {token.type.name}", token.line, token.column)

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _parse_block(self) -> List[Statement]:
        """Parse: '{' stmt* '}'"""
        self._expect(TokenType.LBRACE)
        statements = []
        while not self._check(TokenType.RBRACE) and not self._check(TokenType.EOF):
            statements.append(self._parse_statement())
        self._expect(TokenType.RBRACE)
        return statements

    def _parse_statement(self) -> Statement:
        token_type = self._current().type
        if token_type == TokenType.LET:
            return self._parse_let()
        if token_type == TokenType.RETURN:
            return self._parse_return()
        if token_type == TokenType.FOR:
            return self._parse_for()
        if token_type == TokenType.IF:
            return self._parse_if()

        if token_type == TokenType.IDENTIFIER:
            checkpoint = self.pos
            name = self._advance().value
            if self._check(TokenType.EQ) or self._check(TokenType.LBRACKET):
                assignment = self._try_parse_assignment(name)
                if assignment is not None:
                    return assignment
            self.pos = checkpoint

        expr = self._parse_expression()
        self._expect(TokenType.SEMICOLON)
        return ExprStatement(expr)

    def _parse_let(self) -> Let:
        """Parse: let <name> (: <type>)? = <expr>;"""
        self._expect(TokenType.LET)
        name = self._expect(TokenType.IDENTIFIER).value
        ty = None
        if self._match(TokenType.COLON):
            ty = self._parse_type()
        self._expect(TokenType.EQ)
        value = self._parse_expression()
        self._expect(TokenType.SEMICOLON)
        return Let(name, value, ty)

    def _try_parse_assignment(self, name: str) -> Optional[Assign]:
        """
        Parse the rest of: <name> ('[' expr ']')? = <expr>;

        Returns None (caller rewinds) when an indexed target is not
        followed by '=', e.g. the expression statement `arr[0];`.
        """
        index = None
        if self._match(TokenType.LBRACKET):
            index = self._parse_expression()
            self._expect(TokenType.RBRACKET)
            if not self._check(TokenType.EQ):
                return None
        self._expect(TokenType.EQ)
        value = self._parse_expression()
        self._expect(TokenType.SEMICOLON)
        return Assign(name, value, index)

    def _parse_return(self) -> Return:
        """Parse: return <expr>?;  (bare return yields 0)"""
        self._expect(TokenType.RETURN)
        if self._match(TokenType.SEMICOLON):
            return Return(IntLiteral(0))
        value = self._parse_expression()
        self._expect(TokenType.SEMICOLON)
        return Return(value)

    def _parse_for(self) -> For:
        """Parse: for <var> in <start>..<end> { body }"""
        self._expect(TokenType.FOR)
        var = self._expect(TokenType.IDENTIFIER).value
        self._expect(TokenType.IN)
        start = self._parse_expression()
        self._expect(TokenType.DOT_DOT)
        end = self._parse_expression()
        body = self._parse_block()
        return For(var, start, end, body)

    def _parse_if(self) -> If:
        """Parse: if <cond> { then } (else { else })?"""
        self._expect(TokenType.IF)
        condition = self._parse_expression()
        then_body = self._parse_block()
        else_body = None
        if self._match(TokenType.ELSE):
            else_body = self._parse_block()
        return If(condition, then_body, else_body)

    # -------------------------------------------------------------------------
    # Expressions (precedence climbing, all binary operators left-associative)
    # -------------------------------------------------------------------------

    def _parse_expression(self) -> Expression:
        return self._parse_or()

    def _parse_binary_level(self, operators: Dict[TokenType, BinaryOp],
                            operand: Callable[[], Expression]) -> Expression:
        left = operand()
        while self._current().type in operators:
            op = operators[self._advance().type]
            left = Binary(op, left, operand())
        return left

    def _parse_or(self) -> Expression:
        return self._parse_binary_level({TokenType.OR_OR: BinaryOp.OR}, self._parse_and)

    def _parse_and(self) -> Expression:
        return self._parse_binary_level({TokenType.AND_AND: BinaryOp.AND}, self._parse_equality)

    def _parse_equality(self) -> Expression:
        return self._parse_binary_level(EQUALITY_OPS, self._parse_relational)

    def _parse_relational(self) -> Expression:
        return self._parse_binary_level(RELATIONAL_OPS, self._parse_additive)

    def _parse_additive(self) -> Expression:
        return self._parse_binary_level(ADDITIVE_OPS, self._parse_term)

    def _parse_term(self) -> Expression:
        return self._parse_binary_level(MULTIPLICATIVE_OPS, self._parse_unary)

    def _parse_unary(self) -> Expression:
        if self._match(TokenType.MINUS):
            return Unary(UnaryOp.NEG, self._parse_unary())
        if self._match(TokenType.BANG):
            return Unary(UnaryOp.NOT, self._parse_unary())
        return self._parse_postfix()

    def _parse_postfix(self) -> Expression:
        expr = self._parse_primary()
        while True:
            if self._match(TokenType.LBRACKET):
                index = self._parse_expression()
                self._expect(TokenType.RBRACKET)
                expr = Index(expr, index)
            elif self._check(TokenType.LPAREN) and isinstance(expr, Variable):
                self._advance()
                args = self._parse_expression_list(TokenType.RPAREN)
                self._expect(TokenType.RPAREN)
                expr = Call(expr.name, args)
            else:
                return expr

    def _parse_primary(self) -> Expression:
        token = self._advance()

        if token.type == TokenType.INT_LITERAL:
            return IntLiteral(token.value)
        if token.type == TokenType.FLOAT_LITERAL:
            return FloatLiteral(token.value)
        if token.type == TokenType.TRUE:
            return BoolLiteral(True)
        if token.type == TokenType.FALSE:
            return BoolLiteral(False)
        if token.type == TokenType.IDENTIFIER:
            return Variable(token.value)

        if token.type == TokenType.LBRACKET:
            elements = self._parse_expression_list(TokenType.RBRACKET)
            self._expect(TokenType.RBRACKET)
            return ArrayLiteral(elements)

        if token.type == TokenType.LPAREN:
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN)
            return expr

        if token.type == TokenType.MAP:
            self._expect(TokenType.LPAREN)
            function = self._expect(TokenType.IDENTIFIER).value
            self._expect(TokenType.COMMA)
            array = self._parse_expression()
            self._expect(TokenType.RPAREN)
            return MapExpr(function, array)

        raise ParseError(f"Unexpected token {token.type.name} in expression",
                         token.line, token.column)

    def _parse_expression_list(self, closer: TokenType) -> List[Expression]:
        items: List[Expression] = []
        if self._check(closer):
            return items
        items.append(self._parse_expression())
        while self._match(TokenType.COMMA):
            items.append(self._parse_expression())
        return items

    # Helper methods
    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        last = self.tokens[-1] if self.tokens else None
        return Token(TokenType.EOF, None, last.line if last else 0, last.column if last else 0)

    def _advance(self) -> Token:
        token = self._current()
        self.pos += 1
        return token

    def _check(self, type: TokenType) -> bool:
        return self._current().type == type

    def _match(self, type: TokenType) -> bool:
        if self._check(type):
            self._advance()
            return True
        return False

    def _expect(self, type: TokenType) -> Token:
        token = self._current()
        if token.type != type:
            raise ParseError(f"Expected {type.name}, found {token.type.name}",
                             token.line, token.column)
        return self._advance()


def parse(tokens: List[Token]) -> Program:
    """Convenience function: parse a token list."""
    return QuarkParser(tokens).parse()


def parse_source(source: str) -> Program:
    """Convenience function: tokenize and parse source text."""
    return parse(tokenize(source))
